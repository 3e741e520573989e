"""Tests for shell command composition."""

from deployctl.remote.command import Chain, Command, Substitution, chain, git, kill, shell


class TestCommand:
    """Tests for Command rendering."""

    def test_plain_arguments(self):
        assert Command.of("git", "fetch", "origin").render() == "git fetch origin"

    def test_arguments_are_quoted(self):
        cmd = Command.of("cd", "/opt/apps/my app")
        assert cmd.render() == "cd '/opt/apps/my app'"

    def test_metacharacters_are_inert(self):
        cmd = git("reset", "--hard", "origin/main; rm -rf /")
        assert cmd.render() == "git reset --hard 'origin/main; rm -rf /'"

    def test_env_prefix(self):
        cmd = Command.of("bundle", "exec", "rake", "db:migrate", env={"RAILS_ENV": "staging"})
        assert cmd.render() == "RAILS_ENV=staging bundle exec rake db:migrate"

    def test_env_value_quoted(self):
        cmd = Command.of("true", env={"RAILS_ENV": "a b"})
        assert cmd.render() == "RAILS_ENV='a b' true"

    def test_str(self):
        assert str(Command.of("whoami")) == "whoami"


class TestChain:
    """Tests for && chains."""

    def test_join(self):
        result = Chain(commands=(git("submodule", "init"), git("submodule", "sync")))
        assert result.render() == "git submodule init && git submodule sync"

    def test_cwd_prefix(self):
        result = chain(git("status"), cwd="/opt/apps/shop")
        assert result.render() == "cd /opt/apps/shop && git status"

    def test_no_cwd(self):
        assert chain(git("status")).render() == "git status"


class TestShell:
    """Tests for sh -c wrapping."""

    def test_without_user(self):
        cmd = shell(Command.of("whoami"))
        assert cmd.render() == "sh -c whoami"

    def test_with_user(self):
        cmd = shell(chain(Command.of("umask", "002"), Command.of("cd", "/srv")), user="app")
        assert cmd.render() == "sudo -u app sh -c 'umask 002 && cd /srv'"


class TestKill:
    """Tests for pid-file signalling."""

    def test_substitution(self):
        sub = Substitution(Command.of("cat", "/srv/tmp/pids/unicorn.staging.pid"))
        assert sub.render() == '"$(cat /srv/tmp/pids/unicorn.staging.pid)"'

    def test_kill_default_signal(self):
        assert kill("/srv/u.pid").render() == 'kill "$(cat /srv/u.pid)"'

    def test_kill_with_signal(self):
        assert kill("/srv/u.pid", "USR2").render() == 'kill -USR2 "$(cat /srv/u.pid)"'

    def test_kill_inside_shell(self):
        cmd = shell(kill("/srv/u.pid", "USR2"), user="app")
        assert cmd.render() == "sudo -u app sh -c 'kill -USR2 \"$(cat /srv/u.pid)\"'"
