#!/usr/bin/env python3
"""
Relay hub: routes chat between the game server and external chat clients

Game text → TextNormalizer → game_message_received listeners
Client text → CommandRegistry → command result back to the client
	                          → or game broadcast + client_message_received listeners

The hub does no error handling of its own. Exceptions from commands,
clients, the game server or listeners reach the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from chat_client import ChatClient
from client_lifecycle import ClientLifecycleManager
from game_bridge import EXCLUDE_NONE, GameServer
from relay_commands.registry import CommandRegistry, UnknownCommandError
from relay_events import (
	ClientChatEventArgs,
	ClientUser,
	Color,
	EventStream,
	GameChatEventArgs,
	GamePlayer,
)
from text_normalizer import TagTextNormalizer, TextNormalizer, plain_text


@dataclass(frozen=True)
class ClientMessageOptions:
	"""Per-client settings applied to every message that client relays"""
	command_prefix: str = "!"		# marks a message as a command
	client_prefix: str = ""			# put in front of the relayed line, e.g. "[Web] "
	source_channel_id: int = 0		# channel the message came from, 0 = none


class RelayHub:
	"""
	One per process. Owns the client list and the four event streams.

	Event listeners are called as listener(sender, event_args).
	"""

	def __init__(self, game_server: GameServer, command_registry: CommandRegistry,
				 normalizer: Optional[TextNormalizer] = None):
		self.game_server = game_server
		self.command_registry = command_registry
		self.normalizer = normalizer or TagTextNormalizer()
		self.lifecycle = ClientLifecycleManager()

		self.game_message_received = EventStream("game_message_received")
		self.game_message_sent = EventStream("game_message_sent")
		self.client_message_received = EventStream("client_message_received")
		self.client_message_sent = EventStream("client_message_sent")

		self.logger = logging.getLogger(__name__)

	# Game → clients

	def on_game_text_produced(self, sender, player: GamePlayer, text: str,
							  color: Color = Color.WHITE) -> None:
		"""A player said something in game. Notifies game_message_received listeners."""
		message = plain_text(self.normalizer.parse(text, color))
		self.logger.debug(f"Game message from {player.name}: {message}")
		self.game_message_received.invoke(sender, GameChatEventArgs(player, color, message))

	# Clients → game

	def on_client_text_produced(self, sender: ChatClient, user: ClientUser, text: str,
								options: Optional[ClientMessageOptions] = None) -> None:
		"""
		A user on a chat client sent text. Commands are executed and answered
		through sender.handle_command(); anything else is broadcast into the
		game and reported to client_message_received listeners.
		"""
		if options is None:
			options = ClientMessageOptions()

		if self.command_registry.is_command(text, options.command_prefix):
			self._run_command(sender, user, text, options)
			return

		line = f"{options.client_prefix}<{user.username}> {text}"
		self.game_server.broadcast_chat_message(line, EXCLUDE_NONE)
		self.client_message_received.invoke(sender, ClientChatEventArgs(user, text))

	def _run_command(self, sender: ChatClient, user: ClientUser, text: str,
					 options: ClientMessageOptions) -> None:
		try:
			invocation = self.command_registry.get_executable_command(text, options.command_prefix, user)
		except UnknownCommandError as e:
			self.logger.info(f"{sender.name}: {user.username} used unknown command: {text}")
			sender.handle_command(None, str(e), options.source_channel_id)
			return

		self.logger.info(f"{sender.name}: {user.username} ran {options.command_prefix}{invocation.name}")
		result = invocation.execute()
		sender.handle_command(invocation, result, options.source_channel_id)

	# Client lifecycle

	@property
	def subscribers(self) -> Tuple[ChatClient, ...]:
		return self.lifecycle.subscribers

	def register_client(self, client: ChatClient) -> None:
		self.lifecycle.register(client)

	def connect_all(self) -> None:
		self.lifecycle.connect_all()

	def disconnect_all(self) -> None:
		self.lifecycle.disconnect_all()
