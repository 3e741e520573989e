"""SSH transport built on the system ``ssh`` client."""

import posixpath
import shutil
import subprocess

from deployctl.core.exceptions import CommandExecutionError, UploadError
from deployctl.core.logging import get_logger
from deployctl.deploy.models import Host
from deployctl.remote.command import Command, chain
from deployctl.remote.transport import CommandResult, Transport

logger = get_logger(__name__)


class SSHTransport(Transport):
    """Runs remote commands through ``ssh`` in batch mode."""

    def __init__(self, timeout: int | None = None, ssh_binary: str = "ssh"):
        self.timeout = timeout
        self.ssh_binary = ssh_binary

    def build_ssh_cmd(self, host: Host, remote_command: str) -> list[str]:
        """Build the local ``ssh`` argv for ``remote_command``."""
        destination = f"{host.user}@{host.address}" if host.user else host.address
        return [
            self.ssh_binary,
            "-o", "BatchMode=yes",
            "-p", str(host.port),
            "-A" if host.forward_agent else "-a",
            destination,
            remote_command,
        ]

    def execute(self, host: Host, command: str) -> CommandResult:
        result = self._run(host, command)
        return CommandResult(
            exit_status=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def upload(self, content: str, host: Host, path: str) -> None:
        remote = chain(
            Command.of("mkdir", "-p", posixpath.dirname(path) or "."),
            Command.of("tee", path),
        ).render()
        try:
            result = self._run(host, remote, stdin=content)
        except CommandExecutionError as e:
            raise UploadError(f"Upload failed: {e.message}", host=host.address, path=path)

        if result.returncode != 0:
            raise UploadError(
                f"Upload failed (exit {result.returncode}): {result.stderr.strip()}",
                host=host.address,
                path=path,
            )

    def _run(
        self,
        host: Host,
        remote_command: str,
        stdin: str | None = None,
    ) -> subprocess.CompletedProcess:
        if shutil.which(self.ssh_binary) is None:
            raise CommandExecutionError(
                f"{self.ssh_binary} not found in PATH",
                host=host.address,
                command=remote_command,
            )

        cmd = self.build_ssh_cmd(host, remote_command)
        logger.debug("ssh %s: %s", host.address, remote_command)
        try:
            return subprocess.run(
                cmd,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise CommandExecutionError(
                f"Command timed out after {self.timeout}s",
                host=host.address,
                command=remote_command,
            )
