"""Deployment logging to the Codebase tracker."""

import re
import shutil
import subprocess
from typing import Any

from deployctl.config import DeployConfig, TrackerConfig
from deployctl.core.exceptions import (
    CommandExecutionError,
    ConfigurationParseError,
    ExternalServiceError,
    NoTargetsError,
)
from deployctl.core.logging import StructuredLogger
from deployctl.deploy.branches import BranchManager
from deployctl.deploy.models import DeploymentRecord, LogResult, LogStatus, RepositoryRef, releasing_only
from deployctl.deploy.roles import RoleResolver

logger = StructuredLogger(__name__)


def parse_repository(url: str, domain: str = "codebasehq.com", user: str = "git") -> RepositoryRef:
    """Split a tracker-hosted repository URL into account, project and repo.

    Args:
        url: Repository URL, e.g. ``git@codebasehq.com:acme/shop/web.git``
        domain: Tracker domain the URL must point at
        user: SSH user the URL must use

    Raises:
        ConfigurationParseError: If the URL is not a tracker repository
    """
    pattern = re.compile(
        rf"{re.escape(user)}@{re.escape(domain)}:([^/]+)/([^/]+)/([^/]+)\.git"
    )
    match = pattern.fullmatch(url or "")
    if not match:
        raise ConfigurationParseError(
            f"Repository URL does not match a valid Codebase repository: {url!r}"
        )
    account, project, repo = match.groups()
    return RepositoryRef(account=account, project=project, repo=repo)


class CodebaseTracker:
    """Thin wrapper around the ``cb`` command line client."""

    def __init__(self, settings: TrackerConfig, dry_run: bool = False, timeout: int = 60):
        self.settings = settings
        self.dry_run = dry_run
        self.timeout = timeout

    def host_for(self, account: str) -> str:
        return f"{account}.{self.settings.domain}"

    def _run(self, args: list[str]) -> subprocess.CompletedProcess:
        executable = shutil.which(self.settings.command)
        if executable is None:
            raise ExternalServiceError(f"{self.settings.command} not found in PATH")
        try:
            return subprocess.run(
                [executable] + args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.SubprocessError as e:
            raise ExternalServiceError(f"Failed to run {self.settings.command}: {e}")

    def check_token(self, account: str) -> bool:
        """Check an access token is configured for ``account``."""
        if self.dry_run:
            return True
        try:
            result = self._run(["test", self.host_for(account)])
        except ExternalServiceError as e:
            logger.warning("Token check failed", account=account, error=str(e))
            return False
        return result.returncode == 0

    def record(self, record: DeploymentRecord, environment: str) -> None:
        """Report one deployment for ``environment``.

        Raises:
            ExternalServiceError: If the tracker command fails
        """
        args = record.arguments(environment)
        if self.dry_run:
            logger.info("[dry-run] Would run tracker", command=" ".join([self.settings.command] + args))
            return
        result = self._run(args)
        if result.returncode != 0:
            logger.error("Tracker command failed", environment=environment, returncode=result.returncode)
            raise ExternalServiceError(
                f"Tracker rejected deployment for {environment}: {result.stderr.strip()}",
                returncode=result.returncode,
            )


class DeploymentLogger:
    """Reports the revision range of the last deployment to the tracker."""

    def __init__(
        self,
        config: DeployConfig,
        resolver: RoleResolver,
        branches: BranchManager,
        tracker: CodebaseTracker,
        output: Any = None,
    ):
        self.config = config
        self.resolver = resolver
        self.branches = branches
        self.tracker = tracker
        self._output = output

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._output is not None:
            self._output.print_warning(message)

    def servers(self) -> list[str]:
        """Unique host addresses across every role, in declaration order."""
        addresses: list[str] = []
        for hosts in self.config.role_hosts().values():
            for host in hosts:
                if host.address not in addresses:
                    addresses.append(host.address)
        return addresses

    def log_deployment(self) -> LogResult:
        """Record the deployment once per environment.

        Returns:
            ``LOGGED`` when the tracker was invoked, ``LogResult.skipped``
            when there was nothing (or no way) to log
        """
        settings = self.config.tracker
        try:
            repository = parse_repository(
                self.config.repository, settings.domain, settings.git_user
            )
        except ConfigurationParseError as e:
            self._warn(e.message)
            return LogResult.skipped(e.message)

        if not self.tracker.check_token(repository.account):
            message = f"You do not have a token for {self.tracker.host_for(repository.account)} configured."
            self._warn(message)
            return LogResult.skipped(message)

        try:
            host = self.resolver.all_hosts(only=releasing_only)[0]
            release = self.branches.revisions(host)
        except (CommandExecutionError, NoTargetsError) as e:
            message = f"Could not read the deployed revisions, deployment not logged: {e}"
            self._warn(message)
            return LogResult.skipped(message)

        if not release.has_changes:
            message = "The current and rollback release are the same, nothing to log."
            self._warn(message)
            return LogResult.skipped(message)

        record = DeploymentRecord(
            repository=repository,
            rollback_revision=release.rollback_revision,
            current_revision=release.current_revision,
            servers=tuple(self.servers()),
            branch=self.config.branch,
            tracker_host=self.tracker.host_for(repository.account),
            protocol=settings.protocol,
        )

        result = LogResult(status=LogStatus.LOGGED, record=record)
        log = logger.bind(
            repository=f"{repository.project}:{repository.repo}",
            revisions=f"{release.rollback_revision[:10]}..{release.current_revision[:10]}",
        )
        for environment in self.config.environments:
            log.info("Logging deployment", environment=environment)
            try:
                self.tracker.record(record, environment)
                result.environments.append(environment)
            except ExternalServiceError as e:
                self._warn(f"Could not log deployment for {environment}: {e.message}")
                result.failed_environments.append(environment)
        return result
