"""Main CLI entry point for deployctl."""

import sys
from typing import Any

import click
from rich.console import Console

from deployctl import __version__
from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import DeployCtlError
from deployctl.core.output import OutputFormat


CONTEXT_SETTINGS = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 120,
}


class OutputFormatType(click.ParamType):
    """Custom Click parameter type for output format."""

    name = "format"

    def convert(
        self,
        value: Any,
        param: click.Parameter | None,
        ctx: click.Context | None,
    ) -> OutputFormat:
        if isinstance(value, OutputFormat):
            return value
        try:
            return OutputFormat(value.lower())
        except ValueError:
            self.fail(
                f"Invalid format '{value}'. Choose from: table, json, yaml, raw",
                param,
                ctx,
            )


OUTPUT_FORMAT = OutputFormatType()


def print_version(ctx: click.Context, param: click.Parameter, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    Console().print(f"deployctl version {__version__}")
    ctx.exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option(
    "-c",
    "--config",
    "config_file",
    type=click.Path(exists=True),
    metavar="FILE",
    envvar="DEPLOYCTL_CONFIG",
    help="Path to config file",
)
@click.option(
    "-e",
    "--environment",
    "environments",
    multiple=True,
    metavar="NAME",
    envvar="DEPLOYCTL_ENVIRONMENT",
    help="Target environment (repeatable; overrides 'environments')",
)
@click.option(
    "-b",
    "--branch",
    metavar="BRANCH",
    envvar="DEPLOYCTL_BRANCH",
    help="Branch to deploy",
)
@click.option(
    "-o",
    "--output",
    "output_format",
    type=OUTPUT_FORMAT,
    metavar="FORMAT",
    help="Output format: table, json, yaml, raw",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="Increase verbosity (-v for info, -vv for debug)",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    help="Suppress non-essential output",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print remote commands without running them",
)
@click.option(
    "--no-color",
    is_flag=True,
    help="Disable colored output",
)
@click.option(
    "--version",
    is_flag=True,
    callback=print_version,
    expose_value=False,
    is_eager=True,
    help="Show version and exit",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: str | None,
    environments: tuple[str, ...],
    branch: str | None,
    output_format: OutputFormat | None,
    verbose: int,
    quiet: bool,
    dry_run: bool,
    no_color: bool,
) -> None:
    """DeployCtl - deploy a git-hosted application to role-grouped hosts.

    \b
    Examples:
        deployctl deploy setup
        deployctl deploy
        deployctl -e staging -e production deploy migrations
        deployctl rollback
        deployctl log pending

    \b
    Configuration:
        ~/.deployctl/config.yaml    User configuration
        ./deploy.yaml               Project configuration
        DBPASS                      Database password for database.yml
    """
    ctx.obj = DeployCtlContext(
        config_file=config_file,
        overrides={"environments": list(environments), "branch": branch},
        output_format=output_format,
        verbose=verbose,
        quiet=quiet,
        dry_run=dry_run,
        color=not no_color,
    )
    ctx.obj.logger.debug("Invocation", command=ctx.invoked_subcommand, dry_run=dry_run)

    if dry_run and not quiet:
        ctx.obj.output.print_warning("Dry-run mode enabled - no remote commands will run")


def register_commands() -> None:
    """Register all command groups."""
    from deployctl.commands.deploy import deploy
    from deployctl.commands.log import log
    from deployctl.commands.tasks import migrate, restart, rollback, start, stop, testing
    from deployctl.commands.unicorn import unicorn

    cli.add_command(deploy)
    cli.add_command(migrate)
    cli.add_command(rollback)
    cli.add_command(testing)
    cli.add_command(start)
    cli.add_command(stop)
    cli.add_command(restart)
    cli.add_command(unicorn)
    cli.add_command(log)


register_commands()


@cli.command()
@pass_context
def config(ctx: DeployCtlContext) -> None:
    """Show the resolved configuration."""
    try:
        cfg = ctx.config
    except DeployCtlError as e:
        ctx.output.print_error(str(e))
        raise click.Abort()

    ctx.output.print_data(
        {
            "application": cfg.application,
            "repository": cfg.repository,
            "branch": cfg.branch,
            "deploy_to": cfg.deploy_to,
            "user": cfg.user,
            "environments": ", ".join(cfg.environments),
            "run_migrations": cfg.run_migrations,
            "skip_unicorn": cfg.skip_unicorn,
            "unicorn_workers": cfg.unicorn_workers,
            "unicorn_timeout": cfg.unicorn_timeout,
            "roles": {name: [h.address for h in hosts] for name, hosts in cfg.role_hosts().items()},
            "workers": cfg.workers is not None,
        },
        title="Current Configuration",
    )


def main() -> None:
    """Main entry point."""
    try:
        cli()
    except DeployCtlError as e:
        Console(stderr=True).print(f"[red]Error:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        Console(stderr=True).print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
