"""
Relay Command System
====================

Commands that chat users can type on any connected client. The relay
hub checks every client message against a CommandRegistry before it
is relayed into the game:

    ┌──────────────┐     ┌──────────────┐     ┌────────────────────┐
    │ Chat client  │────►│  RelayHub    │────►│ Game broadcast     │
    │ (web, ...)   │     │  is_command? │ no  │ + client_message_  │
    └──────────────┘     └──────┬───────┘     │   received event   │
                                │ yes         └────────────────────┘
                           ┌────▼─────┐
                           │ Command  │──► result text back to the
                           │ execute  │    client that asked (never
                           └──────────┘    relayed into the game)

Adding a Command
----------------
1. Subclass Command from registry.py
2. Implement name, help_text and execute(args, user) -> str
3. Register it on the registry the hub was built with:

    registry = create_command_registry(game_server)
    registry.register(MyCommand())

Module Structure
----------------
    relay_commands/
    ├── __init__.py       ← This file. Builds a default registry.
    ├── registry.py       ← Command ABC, CommandInvocation, CommandRegistry, errors.
    └── server_info.py    ← help, playing, world.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from relay_commands.registry import (
    ClassificationError,
    Command,
    CommandError,
    CommandInvocation,
    CommandRegistry,
    UnknownCommandError,
)
from relay_commands.server_info import HelpCommand, PlayingCommand, WorldCommand

if TYPE_CHECKING:
    from game_bridge import GameServer


def create_command_registry(game_server: Optional[GameServer] = None) -> CommandRegistry:
    """Build a registry with the built-in commands.

    The game commands (playing, world) are only registered when a
    game server is given to answer them.
    """
    registry = CommandRegistry()
    registry.register(HelpCommand(registry))
    if game_server is not None:
        registry.register(PlayingCommand(game_server))
        registry.register(WorldCommand(game_server))
    return registry


__all__ = [
    'ClassificationError',
    'Command',
    'CommandError',
    'CommandInvocation',
    'CommandRegistry',
    'UnknownCommandError',
    'create_command_registry',
]
