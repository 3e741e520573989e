"""Deployment data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Host:
    """A resolved deployment target."""

    address: str
    port: int = 22
    user: str | None = None
    forward_agent: bool = True
    database_ops: bool = False
    no_release: bool = False

    def __str__(self) -> str:
        return self.address


def database_ops_only(host: Host) -> bool:
    """Host filter selecting hosts designated for database operations."""
    return host.database_ops


def releasing_only(host: Host) -> bool:
    """Host filter excluding hosts that carry no code checkout."""
    return not host.no_release


@dataclass(frozen=True)
class Release:
    """Revisions held by the two branch pointers on one host."""

    rollback_revision: str
    current_revision: str

    @property
    def has_changes(self) -> bool:
        return self.rollback_revision != self.current_revision


class WorkflowState(str, Enum):
    """States a deployment passes through."""

    IDLE = "idle"
    CODE_UPDATED = "code_updated"
    FINALIZED = "finalized"
    MIGRATED = "migrated"
    RESTARTED = "restarted"
    LOG_COMPLETE = "log_complete"


@dataclass
class WorkflowTransition:
    """A state change recorded by the workflow."""

    state: WorkflowState
    task: str
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "task": self.task,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RepositoryRef:
    """Tracker identifiers extracted from a repository URL."""

    account: str
    project: str
    repo: str


@dataclass(frozen=True)
class DeploymentRecord:
    """Payload reported to the deployment tracker."""

    repository: RepositoryRef
    rollback_revision: str
    current_revision: str
    servers: tuple[str, ...]
    branch: str
    tracker_host: str
    protocol: str = "https"

    def arguments(self, environment: str) -> list[str]:
        """Arguments for the tracker's ``deploy`` subcommand."""
        return [
            "deploy",
            self.rollback_revision,
            self.current_revision,
            "-s",
            ",".join(self.servers),
            "-b",
            self.branch,
            "-r",
            f"{self.repository.project}:{self.repository.repo}",
            "-h",
            self.tracker_host,
            "--protocol",
            self.protocol,
            "-e",
            environment,
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.repository.account,
            "project": self.repository.project,
            "repo": self.repository.repo,
            "rollback_revision": self.rollback_revision,
            "current_revision": self.current_revision,
            "servers": list(self.servers),
            "branch": self.branch,
            "tracker_host": self.tracker_host,
        }


class LogStatus(str, Enum):
    """Outcome of a deployment logging attempt."""

    LOGGED = "logged"
    SKIPPED = "skipped"


@dataclass
class LogResult:
    """Result of ``log_deployment``.

    Fatal failures are raised; everything the logger recovers from is either
    ``LOGGED`` (possibly with per-environment failures) or ``SKIPPED``.
    """

    status: LogStatus
    reason: str | None = None
    record: DeploymentRecord | None = None
    environments: list[str] = field(default_factory=list)
    failed_environments: list[str] = field(default_factory=list)

    @classmethod
    def skipped(cls, reason: str) -> "LogResult":
        return cls(status=LogStatus.SKIPPED, reason=reason)

    @property
    def is_skipped(self) -> bool:
        return self.status == LogStatus.SKIPPED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "reason": self.reason,
            "record": self.record.to_dict() if self.record else None,
            "environments": self.environments,
            "failed_environments": self.failed_environments,
        }
