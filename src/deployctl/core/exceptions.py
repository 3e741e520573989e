"""Custom exceptions for deployctl."""

from typing import Any


class DeployCtlError(Exception):
    """Base exception for all deployctl errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


class ConfigError(DeployCtlError):
    """Configuration-related errors."""

    pass


class CommandExecutionError(DeployCtlError):
    """A remote command exited non-zero or the host was unreachable."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        command: str | None = None,
        exit_status: int | None = None,
        output: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.host = host
        self.command = command
        self.exit_status = exit_status
        self.output = output

    def __str__(self) -> str:
        parts = [self.message]
        if self.host:
            parts.append(f"host={self.host}")
        if self.exit_status is not None:
            parts.append(f"exit={self.exit_status}")
        if self.command:
            parts.append(f"command: {self.command}")
        return " ".join(parts)


class UploadError(DeployCtlError):
    """File transfer to a remote host failed."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        path: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.host = host
        self.path = path


class PreconditionError(DeployCtlError):
    """A task was invoked before the state it depends on exists."""

    pass


class NoTargetsError(PreconditionError):
    """Role resolution produced no hosts."""

    def __init__(
        self,
        message: str,
        roles: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.roles = roles or []


class ConfigurationParseError(DeployCtlError):
    """Repository URL or tracker credentials could not be interpreted."""

    pass


class ExternalServiceError(DeployCtlError):
    """The deployment tracker rejected or failed a request."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, details)
        self.returncode = returncode
