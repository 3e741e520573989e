"""Unicorn command group."""

import click

from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import DeployCtlError


@click.group()
@pass_context
def unicorn(ctx: DeployCtlContext) -> None:
    """Unicorn process management on the app hosts.

    \b
    Examples:
        deployctl unicorn restart
        deployctl -e staging unicorn stop
    """
    pass


@unicorn.command("start")
@pass_context
def unicorn_start(ctx: DeployCtlContext) -> None:
    """Upload the config and start unicorn for each environment."""
    try:
        ctx.workflow.unicorn_start()
        ctx.output.print_success("Unicorn started")
    except DeployCtlError as e:
        ctx.output.print_error(f"Unicorn start failed: {e}")
        raise click.Abort()


@unicorn.command("stop")
@pass_context
def unicorn_stop(ctx: DeployCtlContext) -> None:
    """Stop unicorn for each environment."""
    try:
        ctx.workflow.unicorn_stop()
        ctx.output.print_success("Unicorn stopped")
    except DeployCtlError as e:
        ctx.output.print_error(f"Unicorn stop failed: {e}")
        raise click.Abort()


@unicorn.command("restart")
@pass_context
def unicorn_restart(ctx: DeployCtlContext) -> None:
    """Upload the config and send unicorn a graceful reload (USR2)."""
    try:
        ctx.workflow.unicorn_restart()
        ctx.output.print_success("Unicorn reloaded")
    except DeployCtlError as e:
        ctx.output.print_error(f"Unicorn restart failed: {e}")
        raise click.Abort()


@unicorn.command("upload-config")
@pass_context
def unicorn_upload_config(ctx: DeployCtlContext) -> None:
    """Render and upload config/unicorn.rb."""
    try:
        if ctx.workflow.unicorn_upload_config():
            ctx.output.print_success(f"Uploaded {ctx.config.unicorn_config_path}")
        else:
            ctx.output.print_info("Unicorn config upload disabled (skip_unicorn_config)")
    except DeployCtlError as e:
        ctx.output.print_error(f"Upload failed: {e}")
        raise click.Abort()
