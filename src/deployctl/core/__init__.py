"""Core utilities and shared components for deployctl."""

# Note: Import context lazily to avoid circular imports
# Use: from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import (
    DeployCtlError,
    ConfigError,
    CommandExecutionError,
    PreconditionError,
    NoTargetsError,
)
from deployctl.core.output import OutputFormatter, console

__all__ = [
    "DeployCtlError",
    "ConfigError",
    "CommandExecutionError",
    "PreconditionError",
    "NoTargetsError",
    "OutputFormatter",
    "console",
]
