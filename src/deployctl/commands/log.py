"""Deployment log command group."""

import click

from deployctl.core.context import DeployCtlContext, pass_context
from deployctl.core.exceptions import DeployCtlError
from deployctl.core.output import OutputFormat


@click.group()
@pass_context
def log(ctx: DeployCtlContext) -> None:
    """Pending commits and Codebase deployment logging.

    \b
    Examples:
        deployctl log pending
        deployctl log deployment
    """
    pass


@log.command("pending")
@click.option(
    "--repo",
    "repo_dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Local clone to compare against",
)
@pass_context
def pending(ctx: DeployCtlContext, repo_dir: str) -> None:
    """List commits that the next deployment would ship."""
    try:
        commits = ctx.workflow.pending(cwd=repo_dir)
    except DeployCtlError as e:
        ctx.output.print_error(f"Could not list pending commits: {e}")
        raise click.Abort()

    if not commits:
        ctx.output.print_info("Nothing pending")
        return
    ctx.output.print_data(commits, headers=["commit", "author", "subject"], title="Pending commits")


@log.command("deployment")
@pass_context
def deployment(ctx: DeployCtlContext) -> None:
    """Log the current deployment in Codebase."""
    try:
        result = ctx.workflow.log_deployment()
    except DeployCtlError as e:
        ctx.output.print_error(f"Could not log deployment: {e}")
        raise click.Abort()

    if ctx.output_format != OutputFormat.TABLE:
        ctx.output.print_data(result.to_dict())
        return
    if result.is_skipped:
        return
    if result.environments:
        ctx.output.print_success(f"Logged deployment for {', '.join(result.environments)}")
    if result.failed_environments:
        ctx.output.print_warning(f"Logging failed for {', '.join(result.failed_environments)}")
