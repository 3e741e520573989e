"""Tests for Codebase deployment logging."""

import subprocess
from unittest.mock import patch

import pytest

from conftest import FakeTracker, RecordingTransport
from deployctl.config import TrackerConfig
from deployctl.core.exceptions import ConfigurationParseError, ExternalServiceError
from deployctl.deploy.branches import BranchManager
from deployctl.deploy.models import DeploymentRecord, LogStatus, RepositoryRef
from deployctl.deploy.roles import RoleResolver
from deployctl.deploy.tracker import CodebaseTracker, DeploymentLogger, parse_repository
from deployctl.remote.transport import RemoteRunner


REVISIONS = "git log rollback --pretty=%H -n 1 && git log deploy"


def make_logger(config, transport, tracker) -> DeploymentLogger:
    return DeploymentLogger(
        config,
        RoleResolver(config.role_hosts()),
        BranchManager(config, RemoteRunner(transport)),
        tracker,
    )


class TestParseRepository:
    """Tests for repository URL parsing."""

    def test_valid(self):
        ref = parse_repository("git@codebasehq.com:acme/shop/web.git")
        assert ref == RepositoryRef(account="acme", project="shop", repo="web")

    def test_custom_domain(self):
        ref = parse_repository("deploy@code.example.com:acme/shop/web.git", "code.example.com", "deploy")
        assert ref.account == "acme"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "git@github.com:acme/web.git",
            "git@codebasehq.com:acme/shop/web",
            "git@codebasehq.com:acme/shop/web.git.bak",
            "git@codebasehq.com:acme/shop/sub/web.git",
            "https://codebasehq.com/acme/shop/web.git",
            "xgit@codebasehq.com:acme/shop/web.git",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(ConfigurationParseError):
            parse_repository(url)

    def test_none(self):
        with pytest.raises(ConfigurationParseError):
            parse_repository(None)


class TestDeploymentRecord:
    """Tests for tracker arguments."""

    def test_arguments(self):
        record = DeploymentRecord(
            repository=RepositoryRef("acme", "shop", "web"),
            rollback_revision="aaa111",
            current_revision="bbb222",
            servers=("a1", "a2", "s1"),
            branch="main",
            tracker_host="acme.codebasehq.com",
        )
        assert record.arguments("staging") == [
            "deploy", "aaa111", "bbb222",
            "-s", "a1,a2,s1",
            "-b", "main",
            "-r", "shop:web",
            "-h", "acme.codebasehq.com",
            "--protocol", "https",
            "-e", "staging",
        ]


class TestDeploymentLogger:
    """Tests for DeploymentLogger.log_deployment."""

    def test_logs_each_environment(self, config_factory, transport, tracker):
        config = config_factory(environments=["staging", "production"])
        result = make_logger(config, transport, tracker).log_deployment()

        assert result.status == LogStatus.LOGGED
        assert result.environments == ["staging", "production"]
        assert [env for env, _ in tracker.recorded] == ["staging", "production"]
        _, args = tracker.recorded[0]
        assert args[:3] == ["deploy", "aaa111", "bbb222"]
        assert args[args.index("-s") + 1] == "a1,a2,s1"
        assert tracker.token_checks == ["acme"]

    def test_revisions_read_from_first_host(self, config, transport, tracker):
        make_logger(config, transport, tracker).log_deployment()
        assert transport.hosts_for(REVISIONS) == ["a1"]

    def test_invalid_repository_skips(self, config_factory, transport, tracker):
        config = config_factory(repository="git@github.com:acme/web.git")
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.is_skipped
        assert tracker.token_checks == []
        assert tracker.recorded == []
        assert transport.calls == []

    def test_missing_token_skips(self, config, transport):
        tracker = FakeTracker(has_token=False)
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.is_skipped
        assert "acme.codebasehq.com" in result.reason
        assert tracker.recorded == []

    def test_same_revisions_skip(self, config, tracker):
        transport = RecordingTransport(stdout_for={REVISIONS: "ccc333\nccc333\n"})
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.is_skipped
        assert "nothing to log" in result.reason
        assert tracker.recorded == []

    def test_unreadable_revisions_skip(self, config, tracker):
        transport = RecordingTransport(fail_on={REVISIONS: 255})
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.is_skipped
        assert "Could not read the deployed revisions" in result.reason
        assert tracker.recorded == []

    def test_no_releasing_host_skips(self, config_factory, transport, tracker):
        config = config_factory(roles={"app": [{"address": "a1", "no_release": True}]})
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.is_skipped
        assert transport.commands(REVISIONS) == []

    def test_failed_environment_does_not_stop_others(self, config_factory, transport):
        tracker = FakeTracker(fail_environments=("staging",))
        config = config_factory(environments=["staging", "production"])
        result = make_logger(config, transport, tracker).log_deployment()
        assert result.status == LogStatus.LOGGED
        assert result.failed_environments == ["staging"]
        assert result.environments == ["production"]

    def test_servers_are_unique(self, config_factory, transport, tracker):
        config = config_factory(roles={"app": ["a1", "a2"], "storage": ["a1", "s1"]})
        assert make_logger(config, transport, tracker).servers() == ["a1", "a2", "s1"]

    def test_to_dict(self, config, transport, tracker):
        result = make_logger(config, transport, tracker).log_deployment()
        data = result.to_dict()
        assert data["status"] == "logged"
        assert data["record"]["repo"] == "web"


class TestCodebaseTracker:
    """Tests for the cb command wrapper."""

    def _completed(self, returncode: int, stderr: str = "") -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(args=[], returncode=returncode, stdout="", stderr=stderr)

    def _record(self) -> DeploymentRecord:
        return DeploymentRecord(
            repository=RepositoryRef("acme", "shop", "web"),
            rollback_revision="aaa111",
            current_revision="bbb222",
            servers=("a1",),
            branch="main",
            tracker_host="acme.codebasehq.com",
        )

    def test_host_for(self):
        assert CodebaseTracker(TrackerConfig()).host_for("acme") == "acme.codebasehq.com"

    def test_check_token(self):
        with patch("deployctl.deploy.tracker.shutil.which", return_value="/usr/bin/cb"), \
             patch("deployctl.deploy.tracker.subprocess.run", return_value=self._completed(0)) as mock_run:
            assert CodebaseTracker(TrackerConfig()).check_token("acme") is True
        assert mock_run.call_args.args[0] == ["/usr/bin/cb", "test", "acme.codebasehq.com"]

    def test_check_token_rejected(self):
        with patch("deployctl.deploy.tracker.shutil.which", return_value="/usr/bin/cb"), \
             patch("deployctl.deploy.tracker.subprocess.run", return_value=self._completed(1)):
            assert CodebaseTracker(TrackerConfig()).check_token("acme") is False

    def test_check_token_without_client(self):
        with patch("deployctl.deploy.tracker.shutil.which", return_value=None):
            assert CodebaseTracker(TrackerConfig()).check_token("acme") is False

    def test_record(self):
        with patch("deployctl.deploy.tracker.shutil.which", return_value="/usr/bin/cb"), \
             patch("deployctl.deploy.tracker.subprocess.run", return_value=self._completed(0)) as mock_run:
            CodebaseTracker(TrackerConfig()).record(self._record(), "staging")
        argv = mock_run.call_args.args[0]
        assert argv[:4] == ["/usr/bin/cb", "deploy", "aaa111", "bbb222"]
        assert argv[-2:] == ["-e", "staging"]

    def test_record_failure(self):
        with patch("deployctl.deploy.tracker.shutil.which", return_value="/usr/bin/cb"), \
             patch("deployctl.deploy.tracker.subprocess.run", return_value=self._completed(2, "denied")):
            with pytest.raises(ExternalServiceError) as exc_info:
                CodebaseTracker(TrackerConfig()).record(self._record(), "staging")
        assert exc_info.value.returncode == 2

    def test_dry_run(self):
        with patch("deployctl.deploy.tracker.subprocess.run") as mock_run:
            tracker = CodebaseTracker(TrackerConfig(), dry_run=True)
            assert tracker.check_token("acme") is True
            tracker.record(self._record(), "staging")
        mock_run.assert_not_called()
