"""Tests for role resolution."""

import pytest

from deployctl.core.exceptions import NoTargetsError, PreconditionError
from deployctl.deploy.models import Host, database_ops_only, releasing_only
from deployctl.deploy.roles import APP_ROLES, CODE_ROLES, RoleResolver


@pytest.fixture
def resolver() -> RoleResolver:
    return RoleResolver(
        {
            "app": [Host("a1", database_ops=True), Host("a2")],
            "storage": [Host("s1"), Host("a1", database_ops=True)],
            "db": [Host("d1", no_release=True)],
            "empty": [],
        }
    )


class TestRoleResolver:
    """Tests for RoleResolver.resolve."""

    def test_role_names(self, resolver):
        assert resolver.role_names == ["app", "storage", "db", "empty"]

    def test_single_role(self, resolver):
        assert [h.address for h in resolver.resolve(APP_ROLES)] == ["a1", "a2"]

    def test_order_and_dedup(self, resolver):
        hosts = resolver.resolve(CODE_ROLES)
        assert [h.address for h in hosts] == ["a1", "a2", "s1"]

    def test_role_order_matters(self, resolver):
        hosts = resolver.resolve(["storage", "app"])
        assert [h.address for h in hosts] == ["s1", "a1", "a2"]

    def test_same_address_different_port_kept(self):
        resolver = RoleResolver({"app": [Host("a1"), Host("a1", port=2222)]})
        assert len(resolver.resolve(["app"])) == 2

    def test_filter(self, resolver):
        hosts = resolver.resolve(APP_ROLES, only=database_ops_only)
        assert [h.address for h in hosts] == ["a1"]

    def test_all_hosts(self, resolver):
        assert [h.address for h in resolver.all_hosts()] == ["a1", "a2", "s1", "d1"]

    def test_all_hosts_releasing_only(self, resolver):
        assert "d1" not in [h.address for h in resolver.all_hosts(only=releasing_only)]

    def test_undeclared_role(self, resolver):
        with pytest.raises(NoTargetsError) as exc_info:
            resolver.resolve(["web"])
        assert exc_info.value.roles == ["web"]

    def test_empty_role(self, resolver):
        with pytest.raises(NoTargetsError):
            resolver.resolve(["empty"])

    def test_filter_matches_nothing(self, resolver):
        with pytest.raises(NoTargetsError):
            resolver.resolve(["storage"], only=lambda h: h.address == "zz")

    def test_no_targets_is_precondition(self):
        assert issubclass(NoTargetsError, PreconditionError)
