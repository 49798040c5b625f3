#!/usr/bin/env python3
"""
Game-side interface of the relay

GameServer is everything the relay needs from the running game:
put a finished chat line in front of players, list who is online,
and name the world. LocalGameServer is an in-process stand-in used
by the terminal console and by the tests.
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

from relay_events import Color, GamePlayer

# exclude_index value meaning "send to everyone"
EXCLUDE_NONE = -1


class GameServer(ABC):
	"""Broadcast-to-game capability consumed by the relay hub"""

	@abstractmethod
	def broadcast_chat_message(self, line: str, exclude_index: int = EXCLUDE_NONE) -> None:
		"""
		Show a fully formatted line to every player except exclude_index.
		The line is displayed as-is and never treated as a command.
		"""
		...

	@abstractmethod
	def online_players(self) -> List[GamePlayer]:
		...

	@property
	@abstractmethod
	def world_name(self) -> str:
		...


class LocalGameServer(GameServer):
	"""
	Minimal in-process game: players join into numbered slots and every
	broadcast is recorded per recipient. player_chat() feeds a player's
	message into the attached relay hub the way a real server hook would.
	"""

	def __init__(self, world_name: str = "World", max_players: int = 255,
				 display: Optional[Callable[[str], None]] = None):
		self._world_name = world_name
		self.max_players = max_players
		self.display = display
		self.hub = None
		self._players: Dict[int, GamePlayer] = {}
		self._inboxes: Dict[int, List[str]] = {}
		self._lock = threading.Lock()
		self.logger = logging.getLogger(__name__)

	@property
	def world_name(self) -> str:
		return self._world_name

	def attach(self, hub) -> None:
		"""Route player chat through this relay hub"""
		self.hub = hub

	# Player slots

	def join(self, name: str) -> GamePlayer:
		with self._lock:
			for index in range(self.max_players):
				if index not in self._players:
					player = GamePlayer(index=index, name=name)
					self._players[index] = player
					self._inboxes[index] = []
					self.logger.info(f"{name} joined {self._world_name} (slot {index})")
					return player
		raise RuntimeError(f"{self._world_name} is full ({self.max_players} players)")

	def leave(self, index: int) -> None:
		with self._lock:
			player = self._players.pop(index, None)
			self._inboxes.pop(index, None)
		if player:
			self.logger.info(f"{player.name} left {self._world_name}")

	def online_players(self) -> List[GamePlayer]:
		with self._lock:
			return [self._players[i] for i in sorted(self._players)]

	def get_player(self, index: int) -> Optional[GamePlayer]:
		return self._players.get(index)

	def inbox(self, index: int) -> List[str]:
		"""Lines delivered to a player so far"""
		with self._lock:
			return list(self._inboxes.get(index, []))

	# Chat

	def broadcast_chat_message(self, line: str, exclude_index: int = EXCLUDE_NONE) -> None:
		with self._lock:
			for index, inbox in self._inboxes.items():
				if index != exclude_index:
					inbox.append(line)
		self.logger.debug(f"Broadcast (exclude={exclude_index}): {line}")
		if self.display:
			self.display(line)

	def player_chat(self, index: int, text: str, color: Color = Color.WHITE) -> None:
		"""A player typed text in game chat"""
		player = self._players.get(index)
		if player is None:
			raise KeyError(f"No player in slot {index}")
		self.broadcast_chat_message(f"<{player.name}> {text}")
		if self.hub is not None:
			self.hub.on_game_text_produced(self, player, text, color)
