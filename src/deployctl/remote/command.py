"""Typed shell command composition.

Commands are built from argument lists and only turned into a shell string
at the edge, with every argument quoted by :func:`shlex.quote`. The few
shell features the deployment needs (``&&`` chains, ``VAR=value`` prefixes,
``$(...)`` substitution, ``sh -c`` wrapping) each have a dedicated type so no
caller interpolates values into a command string.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Substitution:
    """Output of another command, rendered as ``"$(...)"``."""

    command: Command

    def render(self) -> str:
        return f'"$({self.command.render()})"'


Argument = Union[str, Substitution]


def _quote(arg: Argument) -> str:
    if isinstance(arg, Substitution):
        return arg.render()
    return shlex.quote(str(arg))


@dataclass(frozen=True)
class Command:
    """A single program invocation."""

    argv: tuple[Argument, ...]
    env: tuple[tuple[str, str], ...] = ()

    @classmethod
    def of(cls, *argv: Argument, env: dict[str, str] | None = None) -> Command:
        return cls(argv=tuple(argv), env=tuple((env or {}).items()))

    def render(self) -> str:
        assignments = [f"{key}={shlex.quote(value)}" for key, value in self.env]
        return " ".join(assignments + [_quote(arg) for arg in self.argv])

    def __str__(self) -> str:
        return self.render()


@dataclass(frozen=True)
class Chain:
    """Commands joined with ``&&``; the chain stops at the first failure."""

    commands: tuple[Command, ...]

    def render(self) -> str:
        return " && ".join(command.render() for command in self.commands)

    def __str__(self) -> str:
        return self.render()


Runnable = Union[Command, Chain]


def chain(*commands: Command, cwd: str | None = None) -> Chain:
    """Join ``commands``, optionally running them from ``cwd``."""
    prefix = (Command.of("cd", cwd),) if cwd else ()
    return Chain(commands=prefix + tuple(commands))


def shell(script: Runnable, user: str | None = None) -> Command:
    """Wrap ``script`` in ``sh -c``, under ``sudo -u user`` when given."""
    sudo: tuple[Argument, ...] = ("sudo", "-u", user) if user else ()
    return Command(argv=sudo + ("sh", "-c", script.render()))


def git(*args: str) -> Command:
    return Command.of("git", *args)


def kill(pid_file: str, signal: str | None = None) -> Command:
    """Signal the process whose PID is stored in ``pid_file``."""
    flags: tuple[Argument, ...] = (f"-{signal}",) if signal else ()
    return Command(argv=("kill",) + flags + (Substitution(Command.of("cat", pid_file)),))
