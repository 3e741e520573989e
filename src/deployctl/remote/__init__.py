"""Remote command execution: command builder, transports, broadcast."""

from deployctl.remote.command import Chain, Command, chain, git, kill, shell
from deployctl.remote.transport import CommandResult, DryRunTransport, RemoteRunner, Transport

__all__ = [
    "Chain",
    "Command",
    "CommandResult",
    "DryRunTransport",
    "RemoteRunner",
    "Transport",
    "chain",
    "git",
    "kill",
    "shell",
]
