"""Deploy and rollback branch bookkeeping on the remote checkout.

Each host keeps a working copy at ``deploy_to`` with exactly two local
branches: ``deploy`` (checked out, the live code) and ``rollback`` (the code
that was live before the last ``advance``). Only ``advance`` moves
``rollback``.
"""

import subprocess
from collections.abc import Sequence

from deployctl.config import DeployConfig
from deployctl.core.exceptions import CommandExecutionError, ConfigError, PreconditionError
from deployctl.core.logging import StructuredLogger
from deployctl.deploy.models import Host, Release
from deployctl.remote.command import Command, chain, git
from deployctl.remote.transport import RemoteRunner

DEPLOY_BRANCH = "deploy"
ROLLBACK_BRANCH = "rollback"
MISSING_REF_STATUS = 1

logger = StructuredLogger(__name__)


class BranchManager:
    """Maintains the ``deploy``/``rollback`` pointers on each host."""

    def __init__(self, config: DeployConfig, runner: RemoteRunner):
        self.config = config
        self.runner = runner

    @property
    def path(self) -> str:
        return self.config.deploy_to

    def bootstrap(self, hosts: Sequence[Host]) -> None:
        """Replace any checkout with a fresh clone holding only deploy/rollback."""
        if not self.config.repository:
            raise ConfigError("No repository configured")

        branch = self.config.branch
        logger.info("Bootstrapping checkout", path=self.path, branch=branch)
        self.runner.run(hosts, Command.of("rm", "-rf", self.path))
        self.runner.run(
            hosts,
            git("clone", "-n", self.config.repository, self.path, "--branch", branch),
        )
        steps = [git("branch", ROLLBACK_BRANCH), git("checkout", "-b", DEPLOY_BRANCH)]
        if branch != DEPLOY_BRANCH:
            steps.append(git("branch", "-d", branch))
        self.runner.run(hosts, chain(*steps, cwd=self.path))

    def has_rollback_branch(self, host: Host) -> bool:
        """Check ``host`` for the rollback branch.

        ``git rev-parse --verify --quiet`` exits 1 for a missing ref; any other
        failure (unreachable host, no checkout) is not an answer.

        Raises:
            CommandExecutionError: If the check itself could not run
        """
        command = chain(
            git("rev-parse", "--verify", "--quiet", f"refs/heads/{ROLLBACK_BRANCH}"),
            cwd=self.path,
        ).render()
        result = self.runner.transport.execute(host, command)
        if result.exit_status in (0, MISSING_REF_STATUS):
            return result.success
        raise CommandExecutionError(
            "Could not check for the rollback branch",
            host=host.address,
            command=command,
            exit_status=result.exit_status,
            output=result.stderr or result.stdout,
        )

    def advance(self, hosts: Sequence[Host]) -> None:
        """Move ``rollback`` to the current ``deploy`` tip, then update ``deploy``.

        Raises:
            PreconditionError: If any host has no rollback branch yet; checked
                on every host before the first mutation
        """
        missing = [host.address for host in hosts if not self.has_rollback_branch(host)]
        if missing:
            raise PreconditionError(
                f"No '{ROLLBACK_BRANCH}' branch on {', '.join(missing)}; run 'deploy setup' first",
                details={"hosts": missing, "path": self.path},
            )

        branch = self.config.branch
        logger.info("Advancing deploy branch", branch=branch, hosts=len(hosts))
        self.runner.run(
            hosts,
            chain(
                git("branch", "-D", ROLLBACK_BRANCH),
                git("branch", ROLLBACK_BRANCH),
                cwd=self.path,
            ),
        )
        self.runner.run(
            hosts,
            chain(
                git("fetch", "origin"),
                git("reset", "--hard", f"origin/{branch}"),
                cwd=self.path,
            ),
        )

    def revert(self, hosts: Sequence[Host]) -> None:
        """Reset the checkout to the ``rollback`` tip."""
        logger.info("Reverting to rollback branch", hosts=len(hosts))
        self.runner.run(hosts, chain(git("reset", "--hard", ROLLBACK_BRANCH), cwd=self.path))

    def revisions(self, host: Host) -> Release:
        """Read the rollback and deploy tips from ``host``."""
        output = self.runner.capture(
            host,
            chain(
                git("log", ROLLBACK_BRANCH, "--pretty=%H", "-n", "1"),
                git("log", DEPLOY_BRANCH, "--pretty=%H", "-n", "1"),
                cwd=self.path,
            ),
        )
        lines = output.strip().splitlines()
        rollback = lines[0].strip() if lines else ""
        current = lines[1].strip() if len(lines) > 1 else ""
        return Release(rollback_revision=rollback, current_revision=current)

    def current_revision(self, host: Host) -> str:
        return self.runner.capture(
            host,
            chain(git("log", "--pretty=%H", "-n", "1"), cwd=self.path),
        ).strip()


def pending_commits(since: str, branch: str, cwd: str | None = None) -> list[dict[str, str]]:
    """Commits on the local ``branch`` that are not in ``since``.

    Runs the local ``git`` in ``cwd``; each entry carries the commit hash,
    author and subject.
    """
    def local_git(*args: str) -> str:
        try:
            result = subprocess.run(
                ["git", *args], cwd=cwd, capture_output=True, text=True, check=True
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise CommandExecutionError(
                f"Local git failed: {getattr(e, 'stderr', None) or e}",
                host="localhost",
                command=" ".join(["git", *args]),
            )
        return result.stdout

    local_tip = local_git("log", branch, "--pretty=%H", "-n", "1").strip()
    if not since or since == local_tip:
        return []

    commits = []
    for line in local_git("log", f"{since}..{local_tip}", "--pretty=%H%x09%an%x09%s").splitlines():
        if not line.strip():
            continue
        sha, author, subject = (line.split("\t", 2) + ["", ""])[:3]
        commits.append({"commit": sha[:10], "author": author, "subject": subject})
    return commits
