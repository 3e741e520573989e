"""Application server lifecycle: unicorn plus optional background workers."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from deployctl.config import DeployConfig, WorkersConfig
from deployctl.core.logging import StructuredLogger
from deployctl.deploy.models import Host
from deployctl.deploy.roles import APP_ROLES, RoleResolver
from deployctl.deploy.templates import ConfigTemplater
from deployctl.remote.command import Command, chain, kill, shell
from deployctl.remote.transport import RemoteRunner

logger = StructuredLogger(__name__)

UNICORN = "unicorn"
RELOAD_SIGNAL = "USR2"


class ServiceController(ABC):
    """Something on the app hosts that can be started, stopped and restarted."""

    name: str

    @abstractmethod
    def start(self, hosts: Sequence[Host]) -> None:
        pass

    @abstractmethod
    def stop(self, hosts: Sequence[Host]) -> None:
        pass

    @abstractmethod
    def restart(self, hosts: Sequence[Host]) -> None:
        pass


class UnicornController(ServiceController):
    """Controls one daemonised unicorn master per environment.

    ``restart`` sends USR2 so unicorn re-execs a new master and worker
    generation alongside the old one; it is not a stop followed by a start.
    """

    name = UNICORN

    def __init__(self, config: DeployConfig, runner: RemoteRunner, templater: ConfigTemplater):
        self.config = config
        self.runner = runner
        self.templater = templater

    @property
    def service_user(self) -> str | None:
        return self.config.unicorn_user if self.config.unicorn_sudo else None

    def pid_file(self, environment: str) -> str:
        return self.config.pid_file(UNICORN, environment)

    def start_command(self, environment: str) -> Command:
        script = chain(
            Command.of("umask", "002"),
            Command.of("cd", self.config.deploy_to),
            Command.of(
                "bundle", "exec", "unicorn_rails",
                "-E", environment,
                "-c", self.config.unicorn_config_path,
                "-D",
            ),
        )
        return shell(script, user=self.service_user)

    def stop_command(self, environment: str) -> Command:
        return shell(kill(self.pid_file(environment)), user=self.service_user)

    def restart_command(self, environment: str) -> Command:
        return shell(kill(self.pid_file(environment), RELOAD_SIGNAL), user=self.service_user)

    def upload_config(self, hosts: Sequence[Host]) -> bool:
        return self.templater.upload_unicorn_config(hosts)

    def start(self, hosts: Sequence[Host]) -> None:
        self.upload_config(hosts)
        for environment in self.config.environments:
            logger.info("Starting unicorn", environment=environment)
            self.runner.run(hosts, self.start_command(environment))

    def stop(self, hosts: Sequence[Host]) -> None:
        for environment in self.config.environments:
            logger.info("Stopping unicorn", environment=environment)
            self.runner.run(hosts, self.stop_command(environment))

    def restart(self, hosts: Sequence[Host]) -> None:
        self.upload_config(hosts)
        for environment in self.config.environments:
            logger.info("Reloading unicorn", environment=environment, signal=RELOAD_SIGNAL)
            self.runner.run(hosts, self.restart_command(environment))


class CommandWorkers(ServiceController):
    """Background workers driven by configured commands.

    Each action runs from ``deploy_to`` once per environment with
    ``RAILS_ENV`` set. Actions without a command are no-ops.
    """

    name = "workers"

    def __init__(self, config: DeployConfig, workers: WorkersConfig, runner: RemoteRunner):
        self.config = config
        self.workers = workers
        self.runner = runner

    def _run(self, action: str, argv: Sequence[str] | None, hosts: Sequence[Host]) -> None:
        if not argv:
            logger.debug("No workers command configured", action=action)
            return
        for environment in self.config.environments:
            logger.info("Workers", action=action, environment=environment)
            self.runner.run(
                hosts,
                chain(
                    Command.of(*argv, env={"RAILS_ENV": environment}),
                    cwd=self.config.deploy_to,
                ),
            )

    def start(self, hosts: Sequence[Host]) -> None:
        self._run("start", self.workers.start, hosts)

    def stop(self, hosts: Sequence[Host]) -> None:
        self._run("stop", self.workers.stop, hosts)

    def restart(self, hosts: Sequence[Host]) -> None:
        self._run("restart", self.workers.restart, hosts)


class ApplicationLifecycle:
    """Starts, stops and restarts the whole application on the app hosts.

    The unicorn step is skipped when ``skip_unicorn`` is set. Workers are
    handled only when a workers controller was supplied; which collaborators
    take part is fixed at construction.
    """

    def __init__(
        self,
        config: DeployConfig,
        resolver: RoleResolver,
        unicorn: UnicornController,
        workers: ServiceController | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self.unicorn = unicorn
        self.workers = workers

        self._controllers: list[ServiceController] = []
        if not config.skip_unicorn:
            self._controllers.append(unicorn)
        if workers is not None:
            self._controllers.append(workers)

    @property
    def controllers(self) -> list[ServiceController]:
        return list(self._controllers)

    def _hosts(self, controller: ServiceController) -> list[Host]:
        if isinstance(controller, CommandWorkers):
            return self.resolver.resolve(controller.workers.roles)
        return self.resolver.resolve(APP_ROLES)

    def start(self) -> None:
        for controller in self._controllers:
            controller.start(self._hosts(controller))

    def stop(self) -> None:
        for controller in self._controllers:
            controller.stop(self._hosts(controller))

    def restart(self) -> None:
        for controller in self._controllers:
            controller.restart(self._hosts(controller))
