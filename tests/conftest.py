"""Pytest fixtures for deployctl tests."""

import os
import shlex
from typing import Any, Generator

import pytest
from click.testing import CliRunner

from deployctl.config import DeployConfig, TrackerConfig
from deployctl.core.exceptions import ExternalServiceError
from deployctl.deploy.models import DeploymentRecord, Host
from deployctl.deploy.tracker import CodebaseTracker
from deployctl.deploy.workflow import DeployWorkflow
from deployctl.remote.transport import CommandResult, Transport


REPOSITORY = "git@codebasehq.com:acme/shop/web.git"


class RecordingTransport(Transport):
    """Transport that records every call.

    ``fail_on`` maps a command substring to the exit status to return;
    ``stdout_for`` maps a command substring to canned output.
    """

    def __init__(
        self,
        fail_on: dict[str, int] | None = None,
        stdout_for: dict[str, str] | None = None,
    ):
        self.fail_on = fail_on or {}
        self.stdout_for = stdout_for or {}
        self.calls: list[tuple[str, str]] = []
        self.uploads: list[tuple[str, str, str]] = []

    def execute(self, host: Host, command: str) -> CommandResult:
        self.calls.append((host.address, command))
        for needle, status in self.fail_on.items():
            if needle in command:
                return CommandResult(exit_status=status, stderr=f"failed: {needle}")
        for needle, stdout in self.stdout_for.items():
            if needle in command:
                return CommandResult(exit_status=0, stdout=stdout)
        return CommandResult(exit_status=0)

    def upload(self, content: str, host: Host, path: str) -> None:
        self.uploads.append((host.address, path, content))

    def commands(self, needle: str = "") -> list[tuple[str, str]]:
        return [(h, c) for h, c in self.calls if needle in c]

    def hosts_for(self, needle: str) -> list[str]:
        return [h for h, c in self.calls if needle in c]


class FakeRepo:
    """In-memory stand-in for the remote git checkout of one host."""

    def __init__(self):
        self.branches: dict[str, str] = {}
        self.head: str | None = None

    def apply(self, argv: list[str], remote: dict[str, str]) -> tuple[int, str]:
        if argv[:1] != ["git"]:
            if argv[:2] == ["rm", "-rf"]:
                self.branches, self.head = {}, None
            return 0, ""

        args = argv[1:]
        if args[:1] == ["clone"]:
            branch = args[args.index("--branch") + 1]
            self.branches = {branch: remote[branch]}
            self.head = branch
        elif args[:3] == ["rev-parse", "--verify", "--quiet"]:
            return (0 if args[3].rsplit("/", 1)[-1] in self.branches else 1), ""
        elif args[:1] == ["branch"] and args[1] in ("-D", "-d"):
            if args[2] not in self.branches:
                return 1, ""
            del self.branches[args[2]]
        elif args[:1] == ["branch"]:
            if args[1] in self.branches or self.head is None:
                return 128, ""
            self.branches[args[1]] = self.branches[self.head]
        elif args[:2] == ["checkout", "-b"]:
            self.branches[args[2]] = self.branches[self.head]
            self.head = args[2]
        elif args[:2] == ["reset", "--hard"]:
            ref = args[2]
            if ref.startswith("origin/"):
                target = remote[ref.split("/", 1)[1]]
            elif ref in self.branches:
                target = self.branches[ref]
            else:
                return 128, ""
            self.branches[self.head] = target
        elif args[:1] == ["log"] and args[1] == "--pretty=%H":
            return 0, self.branches[self.head]
        elif args[:1] == ["log"]:
            if args[1] not in self.branches:
                return 128, ""
            return 0, self.branches[args[1]]
        return 0, ""


class FakeGitTransport(RecordingTransport):
    """Recording transport that interprets the git commands it receives."""

    def __init__(self, remote: dict[str, str]):
        super().__init__()
        self.remote = remote
        self.repos: dict[str, FakeRepo] = {}

    def execute(self, host: Host, command: str) -> CommandResult:
        self.calls.append((host.address, command))
        if command.startswith(("sudo ", "sh ")):
            return CommandResult(exit_status=0)

        repo = self.repos.setdefault(host.address, FakeRepo())
        output: list[str] = []
        for piece in command.split(" && "):
            status, text = repo.apply(shlex.split(piece), self.remote)
            if text:
                output.append(text)
            if status:
                return CommandResult(exit_status=status, stdout="\n".join(output))
        return CommandResult(exit_status=0, stdout="".join(f"{line}\n" for line in output))


class FakeTracker(CodebaseTracker):
    """Tracker that records deployments instead of running ``cb``."""

    def __init__(self, has_token: bool = True, fail_environments: tuple[str, ...] = ()):
        super().__init__(TrackerConfig())
        self.has_token = has_token
        self.fail_environments = fail_environments
        self.token_checks: list[str] = []
        self.recorded: list[tuple[str, list[str]]] = []

    def check_token(self, account: str) -> bool:
        self.token_checks.append(account)
        return self.has_token

    def record(self, record: DeploymentRecord, environment: str) -> None:
        if environment in self.fail_environments:
            raise ExternalServiceError(f"rejected {environment}", returncode=1)
        self.recorded.append((environment, record.arguments(environment)))


def make_config(**overrides: Any) -> DeployConfig:
    settings: dict[str, Any] = {
        "application": "shop",
        "repository": REPOSITORY,
        "branch": "main",
        "user": "deploy",
        "environments": ["staging"],
        "roles": {
            "app": [{"address": "a1", "database_ops": True}, "a2"],
            "storage": ["s1"],
        },
    }
    settings.update(overrides)
    return DeployConfig(**settings)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click CLI runner."""
    return CliRunner()


@pytest.fixture
def config() -> DeployConfig:
    return make_config()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport(
        stdout_for={"git log rollback --pretty=%H -n 1 && git log deploy": "aaa111\nbbb222\n"}
    )


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def workflow(config: DeployConfig, transport: RecordingTransport, tracker: FakeTracker) -> DeployWorkflow:
    return DeployWorkflow(config, transport, tracker=tracker)


@pytest.fixture(autouse=True)
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before each test."""
    env_vars = [
        "DBPASS",
        "DEPLOYCTL_CONFIG",
        "DEPLOYCTL_ENVIRONMENT",
        "DEPLOYCTL_BRANCH",
    ]

    original = {k: os.environ.get(k) for k in env_vars}

    for k in env_vars:
        os.environ.pop(k, None)

    yield

    for k, v in original.items():
        if v is not None:
            os.environ[k] = v
        else:
            os.environ.pop(k, None)


@pytest.fixture
def temp_config_file(tmp_path):
    """Create a temporary deploy.yaml."""
    config_content = f"""
application: shop
repository: {REPOSITORY}
branch: main
user: deploy
environments: [staging]
roles:
  app:
    - address: a1
      database_ops: true
    - a2
  storage:
    - s1
"""
    config_file = tmp_path / "deploy.yaml"
    config_file.write_text(config_content)
    return str(config_file)


@pytest.fixture
def config_factory():
    """Build a DeployConfig from the test defaults plus overrides."""
    return make_config
