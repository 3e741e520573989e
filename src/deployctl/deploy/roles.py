"""Role to host resolution."""

from collections.abc import Callable, Iterable, Mapping, Sequence

from deployctl.core.exceptions import NoTargetsError
from deployctl.deploy.models import Host

HostFilter = Callable[[Host], bool]

APP_ROLES = ("app",)
CODE_ROLES = ("app", "storage")


class RoleResolver:
    """Maps role names to the hosts a task should run on."""

    def __init__(self, roles: Mapping[str, Sequence[Host]]):
        self._roles = {name: tuple(hosts) for name, hosts in roles.items()}

    @property
    def role_names(self) -> list[str]:
        return list(self._roles)

    def resolve(
        self,
        names: Iterable[str],
        only: HostFilter | None = None,
    ) -> list[Host]:
        """Resolve role names to an ordered, deduplicated host list.

        Args:
            names: Roles to include, in priority order
            only: Optional predicate a host must satisfy

        Returns:
            Hosts in first-seen order

        Raises:
            NoTargetsError: If a role is undeclared or nothing matches
        """
        names = list(names)
        unknown = [name for name in names if name not in self._roles]
        if unknown:
            raise NoTargetsError(
                f"Undeclared role(s): {', '.join(unknown)}",
                roles=names,
            )

        seen: set[tuple[str, int, str | None]] = set()
        hosts: list[Host] = []
        for name in names:
            for host in self._roles[name]:
                key = (host.address, host.port, host.user)
                if key in seen or (only is not None and not only(host)):
                    continue
                seen.add(key)
                hosts.append(host)

        if not hosts:
            raise NoTargetsError(
                f"No hosts matched role(s) {', '.join(names)}",
                roles=names,
            )
        return hosts

    def all_hosts(self, only: HostFilter | None = None) -> list[Host]:
        """Resolve every declared role."""
        return self.resolve(self._roles, only=only)
