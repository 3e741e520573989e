"""Remote configuration file rendering and upload."""

from collections.abc import Mapping, Sequence
from importlib import resources
from pathlib import Path

from jinja2 import BaseLoader, Environment

from deployctl.config import DEFAULT_DATABASE_PASSWORD, DatabaseSecrets, DeployConfig
from deployctl.core.exceptions import ConfigError
from deployctl.core.logging import get_logger
from deployctl.deploy.models import Host
from deployctl.remote.transport import RemoteRunner

logger = get_logger(__name__)

WORKER_PROCESSES = "$WORKER_PROCESSES"
TIMEOUT = "$TIMEOUT"

DATABASE_TEMPLATE = """\
production:
  adapter: mysql2
  encoding: utf8
  reconnect: true
  database: {{ database }}
  pool: 5
  username: {{ username }}
  password: {{ password }}
  host: {{ host }}
"""


def render(template: str, substitutions: Mapping[str, object]) -> str:
    """Replace every occurrence of each placeholder with its value.

    Placeholders that are not in ``substitutions`` stay as literal text, since
    templates routinely contain unrelated ``$``-prefixed Ruby or shell.
    """
    for placeholder, value in substitutions.items():
        template = template.replace(placeholder, str(value))
    return template


def load_unicorn_template(path: str | None = None) -> str:
    """Read the unicorn template, the bundled one unless ``path`` is set."""
    if path is None:
        return resources.files("deployctl.templates").joinpath("unicorn.rb").read_text()
    try:
        return Path(path).read_text()
    except OSError as e:
        raise ConfigError(f"Cannot read unicorn template {path}: {e}")


class ConfigTemplater:
    """Renders the unicorn and database configs and uploads them."""

    def __init__(self, config: DeployConfig, runner: RemoteRunner):
        self.config = config
        self.runner = runner
        self._jinja = Environment(loader=BaseLoader(), keep_trailing_newline=True)

    def unicorn_config(self) -> str:
        template = load_unicorn_template(self.config.unicorn_template)
        return render(
            template,
            {
                WORKER_PROCESSES: self.config.unicorn_workers,
                TIMEOUT: self.config.unicorn_timeout,
            },
        )

    def database_config(self) -> str:
        password = DatabaseSecrets().dbpass
        if password is None:
            # Legacy placeholder password.
            logger.warning(
                "DBPASS is not set; database.yml will contain the placeholder password %r",
                DEFAULT_DATABASE_PASSWORD,
            )
            password = DEFAULT_DATABASE_PASSWORD

        return self._jinja.from_string(DATABASE_TEMPLATE).render(
            database=self.config.application,
            username=self.config.application,
            password=password,
            host=self.config.database_host,
        )

    def upload(self, content: str, hosts: Sequence[Host], path: str) -> None:
        self.runner.put(content, hosts, path)

    def upload_unicorn_config(self, hosts: Sequence[Host]) -> bool:
        """Upload the rendered unicorn config unless disabled.

        Returns:
            True if the file was uploaded
        """
        if self.config.skip_unicorn_config:
            logger.info("Skipping unicorn config upload (skip_unicorn_config)")
            return False
        self.upload(self.unicorn_config(), hosts, self.config.unicorn_config_path)
        return True

    def upload_database_config(self, hosts: Sequence[Host]) -> None:
        self.upload(self.database_config(), hosts, self.config.database_config_path)
