"""Configuration management for deployctl using Pydantic."""

import getpass
from pathlib import Path
from typing import Any

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from deployctl.core.exceptions import ConfigError
from deployctl.deploy.models import Host

DEFAULT_DATABASE_HOST = "db-a-vip.cloud.atechmedia.net"
DEFAULT_DATABASE_PASSWORD = "xxxx"

# Roles every deployment declares, even when no hosts are listed under them.
BUILTIN_ROLES = ("app", "storage")


class SSHOptions(BaseModel):
    """SSH connection defaults applied to every host."""

    model_config = ConfigDict(frozen=True)

    forward_agent: bool = True
    port: int = 22


class HostConfig(BaseModel):
    """A host entry under a role. Unset fields inherit the global defaults."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    address: str = Field(validation_alias=AliasChoices("address", "host"))
    port: int | None = None
    user: str | None = None
    forward_agent: bool | None = None
    database_ops: bool = False
    no_release: bool = False


class TrackerConfig(BaseModel):
    """Codebase deployment tracker settings."""

    model_config = ConfigDict(frozen=True)

    command: str = "cb"
    domain: str = "codebasehq.com"
    git_user: str = "git"
    protocol: str = "https"


class WorkersConfig(BaseModel):
    """Background worker commands, run in the deploy path once per environment."""

    model_config = ConfigDict(frozen=True)

    start: tuple[str, ...] | None = None
    stop: tuple[str, ...] | None = None
    restart: tuple[str, ...] | None = None
    roles: tuple[str, ...] = ("app",)


class DeployConfig(BaseModel):
    """Resolved configuration for a single deployctl invocation.

    Defaults that depend on other settings (``deploy_to``, ``environments``,
    ``user``) are filled in at construction; the model is frozen afterwards.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    application: str
    repository: str = ""
    branch: str = "master"
    user: str
    ssh_options: SSHOptions = Field(default_factory=SSHOptions)
    deploy_to: str
    environment: str = "production"
    environments: tuple[str, ...]
    run_migrations: bool = False

    skip_unicorn: bool = Field(
        default=False,
        validation_alias=AliasChoices("skip_unicorn", "skip_process_manager"),
    )
    skip_unicorn_config: bool = False
    unicorn_sudo: bool = Field(
        default=True,
        validation_alias=AliasChoices("unicorn_sudo", "process_sudo"),
    )
    unicorn_user: str = "app"
    unicorn_workers: int = Field(default=4, ge=1)
    unicorn_timeout: int = Field(default=30, ge=1)
    unicorn_template: str | None = None

    database_host: str = DEFAULT_DATABASE_HOST

    roles: dict[str, tuple[HostConfig, ...]] = Field(
        default_factory=lambda: {name: () for name in BUILTIN_ROLES}
    )
    workers: WorkersConfig | None = None
    tracker: TrackerConfig = Field(default_factory=TrackerConfig)

    @model_validator(mode="before")
    @classmethod
    def resolve_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("user"):
            data["user"] = getpass.getuser()
        if not data.get("deploy_to") and data.get("application"):
            data["deploy_to"] = f"/opt/apps/{data['application']}"
        if not data.get("environments"):
            data["environments"] = (data.get("environment") or "production",)
        return data

    @field_validator("roles", mode="before")
    @classmethod
    def expand_host_shorthand(cls, v: Any) -> Any:
        if not isinstance(v, dict):
            return v
        expanded: dict[str, Any] = {}
        for name, hosts in v.items():
            expanded[name] = [
                {"address": h} if isinstance(h, str) else h for h in (hosts or [])
            ]
        for name in BUILTIN_ROLES:
            expanded.setdefault(name, [])
        return expanded

    @field_validator("environments")
    @classmethod
    def validate_environments(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("at least one environment is required")
        return v

    @property
    def unicorn_config_path(self) -> str:
        return f"{self.deploy_to}/config/unicorn.rb"

    @property
    def database_config_path(self) -> str:
        return f"{self.deploy_to}/config/database.yml"

    def pid_file(self, process: str, environment: str) -> str:
        """PID file written by ``process`` for ``environment``."""
        return f"{self.deploy_to}/tmp/pids/{process}.{environment}.pid"

    def role_hosts(self) -> dict[str, list[Host]]:
        """Materialise every role's hosts with the global SSH defaults applied."""
        return {
            name: [
                Host(
                    address=h.address,
                    port=h.port or self.ssh_options.port,
                    user=h.user or self.user,
                    forward_agent=(
                        self.ssh_options.forward_agent
                        if h.forward_agent is None
                        else h.forward_agent
                    ),
                    database_ops=h.database_ops,
                    no_release=h.no_release,
                )
                for h in hosts
            ]
            for name, hosts in self.roles.items()
        }


class DatabaseSecrets(BaseSettings):
    """Database credentials sourced from the environment."""

    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    dbpass: str | None = None


class ConfigLoader:
    """Loads and merges configuration from multiple sources."""

    CONFIG_FILENAMES = ["deploy.yaml", "deploy.yml", ".deploy.yaml", ".deploy.yml"]

    def __init__(self):
        self._config: DeployConfig | None = None

    def load(
        self,
        config_file: str | Path | None = None,
        overrides: dict[str, Any] | None = None,
    ) -> DeployConfig:
        """Load configuration from files and command-line overrides.

        Priority (highest to lowest):
        1. Command-line overrides
        2. Explicitly specified config file
        3. Project config (./deploy.yaml)
        4. User config (~/.deployctl/config.yaml)

        Args:
            config_file: Optional explicit config file path
            overrides: Values that win over every file

        Returns:
            Frozen, fully resolved configuration
        """
        configs: list[dict[str, Any]] = []

        user_config_path = Path.home() / ".deployctl" / "config.yaml"
        if user_config_path.exists():
            configs.append(self._load_yaml_file(user_config_path))

        project_config = self._find_project_config()
        if project_config:
            configs.append(self._load_yaml_file(project_config))

        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_file}")
            configs.append(self._load_yaml_file(config_path))

        if overrides:
            configs.append({k: v for k, v in overrides.items() if v not in (None, (), [])})

        merged = self._merge_configs(configs)
        if "application" not in merged:
            raise ConfigError("No application configured (set 'application' in deploy.yaml)")

        try:
            self._config = DeployConfig(**merged)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}")
        return self._config

    def _find_project_config(self) -> Path | None:
        """Find project config file in current or parent directories."""
        current = Path.cwd()

        while current != current.parent:
            for filename in self.CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    return config_path
            current = current.parent

        return None

    def _load_yaml_file(self, path: Path) -> dict[str, Any]:
        try:
            with open(path) as f:
                return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}")
        except OSError as e:
            raise ConfigError(f"Cannot read {path}: {e}")

    def _merge_configs(self, configs: list[dict[str, Any]]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for config in configs:
            result = self._deep_merge(result, config)
        return result

    def _deep_merge(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value
        return result


def load_config(
    config_file: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> DeployConfig:
    """Load deployctl configuration.

    Args:
        config_file: Optional explicit config file path
        overrides: Command-line values that take precedence

    Returns:
        Loaded configuration
    """
    return ConfigLoader().load(config_file, overrides)
