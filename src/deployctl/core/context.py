"""Click context object for sharing state across commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from deployctl.config import DeployConfig, load_config
from deployctl.core.logging import LogLevel, StructuredLogger, setup_logging
from deployctl.core.output import OutputFormat, OutputFormatter

if TYPE_CHECKING:
    from deployctl.deploy.workflow import DeployWorkflow
    from deployctl.remote.transport import Transport


class DeployCtlContext:
    """Shared context object for deployctl commands.

    Configuration is loaded on first use so that ``--help`` works outside a
    project directory. The transport is SSH, or a recording no-op transport
    in dry-run mode.
    """

    def __init__(
        self,
        config: DeployConfig | None = None,
        config_file: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
        output_format: OutputFormat | None = None,
        verbose: int = 0,
        quiet: bool = False,
        dry_run: bool = False,
        color: bool = True,
        transport: Transport | None = None,
    ):
        self._config = config
        self._config_file = config_file
        self._overrides = overrides or {}

        self._output_format = output_format or OutputFormat.TABLE
        self._verbose = verbose
        self._quiet = quiet
        self._dry_run = dry_run
        self._color = color

        if verbose >= 2:
            log_level = LogLevel.DEBUG
        elif verbose == 1:
            log_level = LogLevel.INFO
        elif quiet:
            log_level = LogLevel.ERROR
        else:
            log_level = LogLevel.WARNING

        setup_logging(log_level, rich_output=color)
        self._logger = StructuredLogger("context")

        self._output = OutputFormatter(
            format=self._output_format,
            color=color,
            quiet=quiet,
        )

        self._transport = transport
        self._workflow: DeployWorkflow | None = None

    @property
    def config(self) -> DeployConfig:
        """Get the resolved configuration, loading it on first access."""
        if self._config is None:
            self._config = load_config(self._config_file, self._overrides)
        return self._config

    @property
    def output(self) -> OutputFormatter:
        return self._output

    @property
    def output_format(self) -> OutputFormat:
        return self._output_format

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def verbose(self) -> int:
        return self._verbose

    @property
    def quiet(self) -> bool:
        return self._quiet

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def transport(self) -> "Transport":
        """Get or create the remote transport."""
        if self._transport is None:
            if self._dry_run:
                from deployctl.remote.transport import DryRunTransport

                self._transport = DryRunTransport()
            else:
                from deployctl.remote.ssh import SSHTransport

                self._transport = SSHTransport()
        return self._transport

    @property
    def workflow(self) -> "DeployWorkflow":
        """Get or create the deployment workflow for this invocation."""
        if self._workflow is None:
            from deployctl.deploy.tracker import CodebaseTracker
            from deployctl.deploy.workflow import DeployWorkflow

            self._workflow = DeployWorkflow(
                self.config,
                self.transport,
                tracker=CodebaseTracker(self.config.tracker, dry_run=self._dry_run),
                output=self._output,
            )
        return self._workflow

    def confirm(self, message: str, default: bool = False) -> bool:
        """Ask for user confirmation.

        In dry-run mode, always returns True without prompting.
        """
        if self._dry_run:
            self._output.print(f"[dim]\\[dry-run] Would prompt: {message}[/dim]")
            return True
        return self._output.confirm(message, default)


# Click decorator for passing context
pass_context = click.make_pass_decorator(DeployCtlContext, ensure=True)
