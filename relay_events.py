#!/usr/bin/env python3
"""
Event payloads and observer streams for the chat relay hub

GamePlayer / ClientUser - who said it
GameChatEventArgs / ClientChatEventArgs - what was said
EventStream - multicast listener list, invoked in registration order
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Tuple


@dataclass(frozen=True)
class Color:
	"""RGB display color for a chat line"""
	r: int = 255
	g: int = 255
	b: int = 255

	def __post_init__(self):
		for channel in (self.r, self.g, self.b):
			if not (0 <= channel <= 255):
				raise ValueError(f"Color channel out of range: {channel}")

	@classmethod
	def from_hex(cls, value: str) -> 'Color':
		"""Parse RRGGBB (leading # optional)"""
		value = value.strip().lstrip('#')
		if len(value) != 6:
			raise ValueError(f"Expected 6 hex digits, got '{value}'")
		return cls(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))

	def to_hex(self) -> str:
		return f"{self.r:02x}{self.g:02x}{self.b:02x}"


Color.WHITE = Color(255, 255, 255)


@dataclass(frozen=True)
class GamePlayer:
	"""Reference to an in-game actor. index is the recipient slot used for broadcast exclusion."""
	index: int
	name: str


@dataclass(frozen=True)
class ClientUser:
	"""Sender of a message that originated on an external chat client"""
	client: str
	username: str
	channel_id: int = 0


@dataclass(frozen=True)
class GameChatEventArgs:
	"""Payload delivered when a game message has been received"""
	player: GamePlayer
	color: Color
	message: str


@dataclass(frozen=True)
class ClientChatEventArgs:
	"""Payload delivered when a client message has been received"""
	user: ClientUser
	message: str


Listener = Callable[[Any, Any], None]


class EventStream:
	"""
	Named multicast event. Listeners are called as listener(sender, event).

	The listener tuple is replaced on every subscribe/unsubscribe, so
	invoke() iterates a stable snapshot even if another thread is
	subscribing at the same time.
	"""

	def __init__(self, name: str):
		self.name = name
		self._listeners: Tuple[Listener, ...] = ()
		self._lock = threading.Lock()

	def subscribe(self, listener: Listener) -> None:
		with self._lock:
			self._listeners = self._listeners + (listener,)

	def unsubscribe(self, listener: Listener) -> bool:
		"""Remove the most recent registration of listener. Returns False if it was not registered."""
		with self._lock:
			listeners = list(self._listeners)
			for i in range(len(listeners) - 1, -1, -1):
				if listeners[i] == listener:
					del listeners[i]
					self._listeners = tuple(listeners)
					return True
		return False

	def invoke(self, sender: Any, event: Any) -> None:
		"""Call every listener synchronously. Listener exceptions propagate."""
		for listener in self._listeners:
			listener(sender, event)

	def __len__(self) -> int:
		return len(self._listeners)

	def __repr__(self) -> str:
		return f"EventStream({self.name!r}, listeners={len(self._listeners)})"
