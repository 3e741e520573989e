"""Deployment task sequencing."""

from deployctl.config import DeployConfig
from deployctl.core.logging import StructuredLogger
from deployctl.core.output import OutputFormatter
from deployctl.deploy.branches import BranchManager, pending_commits
from deployctl.deploy.lifecycle import ApplicationLifecycle, CommandWorkers, ServiceController, UnicornController
from deployctl.deploy.models import (
    LogResult,
    WorkflowState,
    WorkflowTransition,
    database_ops_only,
    releasing_only,
)
from deployctl.deploy.roles import APP_ROLES, CODE_ROLES, RoleResolver
from deployctl.deploy.templates import ConfigTemplater
from deployctl.deploy.tracker import CodebaseTracker, DeploymentLogger
from deployctl.remote.command import Command, chain, git
from deployctl.remote.transport import RemoteRunner, Transport

logger = StructuredLogger(__name__)


class DeployWorkflow:
    """The deploy, setup, migrate and rollback task chains.

    Tasks call each other directly, so a failing remote command raises out of
    the whole chain and nothing after it runs. Nothing is undone
    automatically; reverting is the operator's ``rollback``.
    """

    def __init__(
        self,
        config: DeployConfig,
        transport: Transport,
        tracker: CodebaseTracker | None = None,
        workers: ServiceController | None = None,
        output: OutputFormatter | None = None,
    ):
        self.config = config
        self.output = output
        self.runner = RemoteRunner(transport, output)
        self.resolver = RoleResolver(config.role_hosts())
        self.branches = BranchManager(config, self.runner)
        self.templater = ConfigTemplater(config, self.runner)

        if workers is None and config.workers is not None:
            workers = CommandWorkers(config, config.workers, self.runner)
        self.lifecycle = ApplicationLifecycle(
            config,
            self.resolver,
            UnicornController(config, self.runner, self.templater),
            workers,
        )
        self.deployment_logger = DeploymentLogger(
            config,
            self.resolver,
            self.branches,
            tracker or CodebaseTracker(config.tracker),
            output,
        )

        self.state = WorkflowState.IDLE
        self.transitions: list[WorkflowTransition] = []

    def _header(self, task: str) -> None:
        if self.output:
            self.output.print_header(task)
        logger.info("Running task", task=task)

    def _enter(self, state: WorkflowState, task: str) -> None:
        self.state = state
        self.transitions.append(WorkflowTransition(state=state, task=task))
        logger.debug("Workflow state changed", state=state.value, task=task)

    # Deploy

    def default(self, migrate: bool = False) -> LogResult:
        """Update code, restart, then log the deployment."""
        self._header("deploy")
        self.update_code(migrate=migrate)
        self.restart()
        return self.log_deployment()

    def migrations(self) -> LogResult:
        """Deploy, migrating the database before the restart."""
        return self.default(migrate=True)

    def update_code(self, migrate: bool = False) -> None:
        self._header("deploy:update_code")
        self.branches.advance(self.resolver.resolve(CODE_ROLES))
        self._enter(WorkflowState.CODE_UPDATED, "update_code")
        self.finalise(migrate=migrate)

    def finalise(self, migrate: bool = False) -> None:
        """Sync submodules and install gems, then migrate if requested."""
        self._header("deploy:finalise")
        hosts = self.resolver.resolve(CODE_ROLES)
        path = self.config.deploy_to
        self.runner.run(
            hosts,
            chain(
                git("submodule", "init"),
                git("submodule", "sync"),
                git("submodule", "update", "--recursive"),
                cwd=path,
            ),
        )
        self.runner.run(hosts, chain(Command.of("bundle", "--deployment", "--quiet"), cwd=path))
        self._enter(WorkflowState.FINALIZED, "finalise")

        if migrate or self.config.run_migrations:
            self.migrate()

    def setup(self) -> None:
        """First-time checkout, database config, then a normal code update."""
        self._header("deploy:setup")
        self.branches.bootstrap(self.resolver.resolve(CODE_ROLES))
        self.upload_db_config()
        self.update_code()

    def upload_db_config(self) -> None:
        self._header("deploy:upload_db_config")
        self.templater.upload_database_config(self.resolver.resolve(CODE_ROLES))

    # Database

    def migrate(self) -> None:
        """Run migrations on the database hosts, once per environment."""
        self._header("migrate")
        hosts = self.resolver.resolve(APP_ROLES, only=database_ops_only)
        for environment in self.config.environments:
            logger.info("Migrating", environment=environment)
            self.runner.run(
                hosts,
                chain(
                    Command.of("bundle", "exec", "rake", "db:migrate", env={"RAILS_ENV": environment}),
                    cwd=self.config.deploy_to,
                ),
            )
        self._enter(WorkflowState.MIGRATED, "migrate")

    # Rollback

    def rollback(self) -> None:
        """Return to the previous release. Does not log to the tracker."""
        self._header("rollback")
        self.branches.revert(self.resolver.resolve(CODE_ROLES))
        self._enter(WorkflowState.CODE_UPDATED, "rollback")
        self.finalise()
        self.restart()

    # Lifecycle

    def start(self) -> None:
        self._header("start")
        self.lifecycle.start()

    def stop(self) -> None:
        self._header("stop")
        self.lifecycle.stop()

    def restart(self) -> None:
        self._header("restart")
        self.lifecycle.restart()
        self._enter(WorkflowState.RESTARTED, "restart")

    def unicorn_start(self) -> None:
        self._header("unicorn:start")
        self.lifecycle.unicorn.start(self.resolver.resolve(APP_ROLES))

    def unicorn_stop(self) -> None:
        self._header("unicorn:stop")
        self.lifecycle.unicorn.stop(self.resolver.resolve(APP_ROLES))

    def unicorn_restart(self) -> None:
        self._header("unicorn:restart")
        self.lifecycle.unicorn.restart(self.resolver.resolve(APP_ROLES))

    def unicorn_upload_config(self) -> bool:
        self._header("unicorn:upload_config")
        return self.lifecycle.unicorn.upload_config(self.resolver.resolve(APP_ROLES))

    # Misc

    def testing(self) -> dict[str, str]:
        """Check connectivity by running ``whoami`` on every host."""
        self._header("testing")
        results = self.runner.run(self.resolver.all_hosts(), Command.of("whoami"))
        return {address: result.stdout.strip() for address, result in results.items()}

    def log_deployment(self) -> LogResult:
        self._header("log:deployment")
        result = self.deployment_logger.log_deployment()
        self._enter(WorkflowState.LOG_COMPLETE, "log_deployment")
        return result

    def pending(self, cwd: str | None = None) -> list[dict[str, str]]:
        """Commits on the local branch that the next deploy would ship."""
        self._header("log:pending")
        host = self.resolver.all_hosts(only=releasing_only)[0]
        current = self.branches.current_revision(host)
        return pending_commits(current, self.config.branch, cwd=cwd)
