"""Deploy command group."""

import click

from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import DeployCtlError
from deployctl.core.output import OutputFormat
from deployctl.deploy.models import LogResult


def _report_log(ctx: DeployCtlContext, result: LogResult) -> None:
    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(
            {
                "log": result.to_dict(),
                "transitions": [t.to_dict() for t in ctx.workflow.transitions],
            }
        )
        return
    if result.is_skipped:
        return
    if result.failed_environments:
        ctx.output.print_warning(
            f"Deployment not logged for: {', '.join(result.failed_environments)}"
        )
    if result.environments:
        ctx.output.print_info(f"Deployment logged for: {', '.join(result.environments)}")


@click.group(invoke_without_command=True)
@pass_context
@click.pass_context
def deploy(click_ctx: click.Context, ctx: DeployCtlContext) -> None:
    """Deploy the latest revision of the application.

    Without a subcommand, updates the code on every host, restarts the
    application and logs the deployment.

    \b
    Examples:
        deployctl deploy
        deployctl deploy migrations
        deployctl deploy setup --yes
    """
    if click_ctx.invoked_subcommand is not None:
        return

    try:
        result = ctx.workflow.default()
        _report_log(ctx, result)
        ctx.output.print_success(f"Deployed {ctx.config.application} ({ctx.config.branch})")
    except DeployCtlError as e:
        ctx.output.print_error(f"Deployment failed: {e}")
        raise click.Abort()


@deploy.command("migrations")
@pass_context
def migrations(ctx: DeployCtlContext) -> None:
    """Deploy and migrate the database before restart."""
    try:
        result = ctx.workflow.migrations()
        _report_log(ctx, result)
        ctx.output.print_success(f"Deployed and migrated {ctx.config.application}")
    except DeployCtlError as e:
        ctx.output.print_error(f"Deployment failed: {e}")
        raise click.Abort()


@deploy.command("setup")
@click.option("-y", "--yes", is_flag=True, help="Skip confirmation")
@pass_context
def setup(ctx: DeployCtlContext, yes: bool) -> None:
    """Set up the repository on the remote servers for the first time.

    Any existing checkout at the deploy path is removed.
    """
    try:
        if not yes and not ctx.confirm(f"Replace the checkout at {ctx.config.deploy_to} on every host?"):
            ctx.output.print_info("Cancelled")
            return

        ctx.workflow.setup()
        ctx.output.print_success(f"{ctx.config.application} set up at {ctx.config.deploy_to}")
    except DeployCtlError as e:
        ctx.output.print_error(f"Setup failed: {e}")
        raise click.Abort()


@deploy.command("upload-db-config")
@pass_context
def upload_db_config(ctx: DeployCtlContext) -> None:
    """Upload the database configuration file."""
    try:
        ctx.workflow.upload_db_config()
        ctx.output.print_success(f"Uploaded {ctx.config.database_config_path}")
    except DeployCtlError as e:
        ctx.output.print_error(f"Upload failed: {e}")
        raise click.Abort()


@deploy.command("update-code")
@click.option("--migrate", is_flag=True, help="Run migrations after finalising")
@pass_context
def update_code(ctx: DeployCtlContext, migrate: bool) -> None:
    """Rotate the rollback branch and fetch the latest code (no restart)."""
    try:
        ctx.workflow.update_code(migrate=migrate)
        ctx.output.print_success("Code updated")
    except DeployCtlError as e:
        ctx.output.print_error(f"Update failed: {e}")
        raise click.Abort()


@deploy.command("finalise")
@click.option("--migrate", is_flag=True, help="Run migrations after installing dependencies")
@pass_context
def finalise(ctx: DeployCtlContext, migrate: bool) -> None:
    """Update submodules and install dependencies."""
    try:
        ctx.workflow.finalise(migrate=migrate)
        ctx.output.print_success("Finalised")
    except DeployCtlError as e:
        ctx.output.print_error(f"Finalise failed: {e}")
        raise click.Abort()
