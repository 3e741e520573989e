"""Remote command transport interface and host broadcast."""

from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass

from deployctl.core.exceptions import CommandExecutionError
from deployctl.core.logging import get_logger
from deployctl.core.output import OutputFormatter
from deployctl.deploy.models import Host
from deployctl.remote.command import Runnable

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Exit status and captured output of one remote command."""

    exit_status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def success(self) -> bool:
        return self.exit_status == 0


class Transport(ABC):
    """Runs commands on, and copies files to, a single host."""

    @abstractmethod
    def execute(self, host: Host, command: str) -> CommandResult:
        """Run ``command`` through the host's login shell."""
        pass

    @abstractmethod
    def upload(self, content: str, host: Host, path: str) -> None:
        """Write ``content`` to ``path`` on ``host``.

        Raises:
            UploadError: If the transfer fails
        """
        pass


class DryRunTransport(Transport):
    """Transport that records what would run and reports success."""

    def __init__(self):
        self.commands: list[tuple[str, str]] = []
        self.uploads: list[tuple[str, str]] = []

    def execute(self, host: Host, command: str) -> CommandResult:
        self.commands.append((host.address, command))
        logger.debug("[dry-run] %s: %s", host.address, command)
        return CommandResult(exit_status=0)

    def upload(self, content: str, host: Host, path: str) -> None:
        self.uploads.append((host.address, path))
        logger.debug("[dry-run] upload %d bytes to %s:%s", len(content), host.address, path)


class RemoteRunner:
    """Broadcasts commands to a set of hosts.

    A broadcast visits hosts in order and raises on the first failure, so the
    calling task stops before touching the remaining hosts.
    """

    def __init__(self, transport: Transport, output: OutputFormatter | None = None):
        self.transport = transport
        self._output = output

    def run(self, hosts: Iterable[Host], command: Runnable) -> dict[str, CommandResult]:
        """Run ``command`` on every host.

        Returns:
            Results keyed by host address

        Raises:
            CommandExecutionError: On the first non-zero exit
        """
        rendered = command.render()
        results: dict[str, CommandResult] = {}
        for host in hosts:
            results[host.address] = self._execute(host, rendered)
        return results

    def capture(self, host: Host, command: Runnable) -> str:
        """Run ``command`` on one host and return its stdout."""
        return self._execute(host, command.render()).stdout

    def put(self, content: str, hosts: Iterable[Host], path: str) -> None:
        for host in hosts:
            if self._output:
                self._output.print_command(host.address, f"upload {path}")
            logger.info("Uploading %s to %s", path, host.address)
            self.transport.upload(content, host, path)

    def _execute(self, host: Host, command: str) -> CommandResult:
        if self._output:
            self._output.print_command(host.address, command)
        logger.debug("Executing on %s: %s", host.address, command)

        result = self.transport.execute(host, command)
        if not result.success:
            raise CommandExecutionError(
                "Remote command failed",
                host=host.address,
                command=command,
                exit_status=result.exit_status,
                output=result.stderr or result.stdout,
            )
        return result
