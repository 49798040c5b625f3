"""
Built-in Relay Commands
=======================

The small set of commands every relay ships with, so chat users on
any client can find out what is going on in the game:

    !help       List the commands this relay understands
    !playing    Who is online right now (aliases: !online, !players)
    !world      World name and player count

Game commands read from the GameServer passed in at construction.
They never change game state.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from relay_commands.registry import Command, CommandRegistry

if TYPE_CHECKING:
    from game_bridge import GameServer
    from relay_events import ClientUser


class HelpCommand(Command):
    """Lists every command registered in the same registry."""

    def __init__(self, registry: CommandRegistry):
        self._registry = registry

    @property
    def name(self) -> str:
        return "help"

    @property
    def aliases(self) -> list[str]:
        return ["commands"]

    @property
    def help_text(self) -> str:
        return "help - List available commands"

    def execute(self, args: str, user: ClientUser, prefix: str = "!") -> str:
        query = args.strip().lower()
        if query:
            command = self._registry.get(query)
            if command is None:
                return f"No command named '{query}'."
            return f"{prefix}{command.help_text}"

        lines = ["Available commands:"]
        for _, help_text in self._registry.list_commands():
            lines.append(f"  {prefix}{help_text}")
        return "\n".join(lines)


class PlayingCommand(Command):
    """Lists players currently online."""

    def __init__(self, game_server: GameServer):
        self._game = game_server

    @property
    def name(self) -> str:
        return "playing"

    @property
    def aliases(self) -> list[str]:
        return ["online", "players"]

    @property
    def help_text(self) -> str:
        return "playing - Show who is online"

    def execute(self, args: str, user: ClientUser, prefix: str = "!") -> str:
        players = self._game.online_players()
        if not players:
            return "No players online."
        names = ", ".join(player.name for player in players)
        noun = "player" if len(players) == 1 else "players"
        return f"{len(players)} {noun} online: {names}"


class WorldCommand(Command):
    """Shows the world name and the player count."""

    def __init__(self, game_server: GameServer):
        self._game = game_server

    @property
    def name(self) -> str:
        return "world"

    @property
    def help_text(self) -> str:
        return "world - Show world name and player count"

    def execute(self, args: str, user: ClientUser, prefix: str = "!") -> str:
        count = len(self._game.online_players())
        return f"World: {self._game.world_name} | Players: {count}"
