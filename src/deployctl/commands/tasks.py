"""Top-level deployment tasks."""

import click

from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import DeployCtlError


@click.command()
@pass_context
def migrate(ctx: DeployCtlContext) -> None:
    """Run database migrations on the remote."""
    try:
        ctx.workflow.migrate()
        ctx.output.print_success(f"Migrated {', '.join(ctx.config.environments)}")
    except DeployCtlError as e:
        ctx.output.print_error(f"Migration failed: {e}")
        raise click.Abort()


@click.command()
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def rollback(ctx: DeployCtlContext, yes: bool) -> None:
    """Roll back to the previous deployment.

    Only one previous release is kept; a second rollback without a deploy in
    between changes nothing.
    """
    try:
        if not yes and not ctx.confirm(f"Roll back {ctx.config.application}?"):
            ctx.output.print_info("Cancelled")
            return

        ctx.workflow.rollback()
        ctx.output.print_success(f"Rolled back {ctx.config.application}")
    except DeployCtlError as e:
        ctx.output.print_error(f"Rollback failed: {e}")
        raise click.Abort()


@click.command()
@pass_context
def testing(ctx: DeployCtlContext) -> None:
    """Test the connection to every host."""
    try:
        results = ctx.workflow.testing()
    except DeployCtlError as e:
        ctx.output.print_error(f"Connection test failed: {e}")
        raise click.Abort()

    ctx.output.print_data(
        [{"host": host, "user": user} for host, user in results.items()],
        headers=["host", "user"],
        title="Connectivity",
    )


@click.command()
@pass_context
def start(ctx: DeployCtlContext) -> None:
    """Start the whole remote application."""
    try:
        ctx.workflow.start()
        ctx.output.print_success("Started")
    except DeployCtlError as e:
        ctx.output.print_error(f"Start failed: {e}")
        raise click.Abort()


@click.command()
@pass_context
def stop(ctx: DeployCtlContext) -> None:
    """Stop the whole remote application."""
    try:
        ctx.workflow.stop()
        ctx.output.print_success("Stopped")
    except DeployCtlError as e:
        ctx.output.print_error(f"Stop failed: {e}")
        raise click.Abort()


@click.command()
@pass_context
def restart(ctx: DeployCtlContext) -> None:
    """Gracefully restart the whole remote application."""
    try:
        ctx.workflow.restart()
        ctx.output.print_success("Restarted")
    except DeployCtlError as e:
        ctx.output.print_error(f"Restart failed: {e}")
        raise click.Abort()
