"""
Command Registry
================

Recognizes chat commands in client messages and turns them into
executable invocations.

    Client types: "!playing"
                    ↓
    is_command("!playing", "!") → prefix matches, "playing" registered
                    ↓
    get_executable_command(...) → CommandInvocation(PlayingCommand, user, "")
                    ↓
    invocation.execute() → "2 players online: Carol, Dave"
                    ↓
    Hub hands the result back to the client that asked

    Client types: "hello everyone"
                    ↓
    is_command(...) → False, the hub relays it as chat

Matching Rules
--------------
- The prefix must be the first thing in the line (leading
  whitespace is ignored). A prefix mid-sentence is never a command.
- The name after the prefix must end at whitespace or end of line,
  so "!helpme" is not "!help".
- Names and aliases are case-insensitive.
- Unknown names after a valid prefix are *not* commands for
  is_command(). get_executable_command() raises UnknownCommandError
  for them, which is a different failure from "not a command at all"
  (ClassificationError).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from relay_events import ClientUser


class CommandError(Exception):
    """Base class for command lookup failures."""


class ClassificationError(CommandError):
    """The text/prefix pair cannot be read as a command invocation."""


class UnknownCommandError(CommandError):
    """The prefix matched but no command has that name."""

    def __init__(self, name: str, prefix: str):
        self.name = name
        self.prefix = prefix
        super().__init__(
            f"Unknown command '{prefix}{name}'. Type {prefix}help for a list of commands."
        )


class Command(ABC):
    """Base class for relay chat commands.

    Required Properties
    -------------------
    name : str
        Primary keyword, lowercase, without prefix.
    help_text : str
        One-line usage shown by the help command, without prefix.
        Convention: "name <args> - Description"

    Required Methods
    ----------------
    execute(args, user, prefix) -> str
        Run the command and return the text to show the user.
        prefix is the one the user typed, for replies that name
        other commands.
        Exceptions raised here are not caught by the hub.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @property
    def aliases(self) -> list[str]:
        """Alternative names that also trigger this command."""
        return []

    @property
    @abstractmethod
    def help_text(self) -> str:
        ...

    @abstractmethod
    def execute(self, args: str, user: ClientUser, prefix: str = "!") -> str:
        ...


@dataclass(frozen=True)
class CommandInvocation:
    """A command bound to the user who typed it and the rest of the line.

    Attributes
    ----------
    command : Command
        The registered handler.
    user : ClientUser
        Who invoked it.
    args : str
        Everything after the command name, leading whitespace stripped.
    prefix : str
        The prefix the user typed. Passed to the command so help
        output matches the client it goes back to.
    """
    command: Command
    user: ClientUser
    args: str = ""
    prefix: str = ""

    @property
    def name(self) -> str:
        return self.command.name

    def execute(self) -> str:
        return self.command.execute(self.args, self.user, self.prefix)


class CommandRegistry:
    """Maps command names and aliases to Command handlers.

    Thread Safety
    -------------
    Lookups are read-only. Register everything at startup before
    the relay starts passing messages.
    """

    def __init__(self):
        self._commands: dict[str, Command] = {}

    def register(self, command: Command) -> None:
        """Register a command handler.

        Raises
        ------
        ValueError
            If the name or any alias is already taken.
        """
        keys = [key.lower() for key in [command.name] + list(command.aliases)]
        for key in keys:
            if not key or any(ch.isspace() for ch in key):
                raise ValueError(f"Invalid command name: '{key}'")
            if key in self._commands:
                raise ValueError(
                    f"Command name collision: '{key}' is already registered "
                    f"to '{self._commands[key].name}'"
                )
        for key in keys:
            self._commands[key] = command

    def _split(self, text: str, prefix: str) -> tuple[str, str]:
        """Split "<prefix><name> <args>" into (name, args)."""
        if not isinstance(text, str) or not isinstance(prefix, str) or not prefix:
            raise ClassificationError(f"Cannot classify {text!r} with prefix {prefix!r}")

        stripped = text.lstrip()
        if not stripped.startswith(prefix):
            raise ClassificationError(f"Text does not start with prefix {prefix!r}")

        parts = stripped[len(prefix):].split(None, 1)
        if not parts or stripped[len(prefix):][:1].isspace():
            raise ClassificationError("No command name after prefix")

        name = parts[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""
        return name, args

    def is_command(self, text: str, prefix: str) -> bool:
        """True if text is prefix + a registered command name. Never raises."""
        try:
            name, _ = self._split(text, prefix)
        except ClassificationError:
            return False
        return name in self._commands

    def get_executable_command(self, text: str, prefix: str, user: ClientUser) -> CommandInvocation:
        """Build an invocation for a command line.

        Raises
        ------
        ClassificationError
            text is not of the form prefix + name.
        UnknownCommandError
            The name is not registered.
        """
        name, args = self._split(text, prefix)
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommandError(name, prefix)
        return CommandInvocation(command=command, user=user, args=args, prefix=prefix)

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name.lower())

    def list_commands(self) -> list[tuple[str, str]]:
        """Return (name, help_text) for all registered commands.

        Deduplicates aliases so each command appears once.
        Sorted alphabetically by name.
        """
        seen = set()
        result = []
        for cmd in self._commands.values():
            if cmd.name not in seen:
                seen.add(cmd.name)
                result.append((cmd.name, cmd.help_text))
        return sorted(result, key=lambda x: x[0])

    def __len__(self) -> int:
        return len({cmd.name for cmd in self._commands.values()})
