#!/usr/bin/env python3
"""
Connect and disconnect the relay's chat clients as one batch
"""

import logging
from typing import List, Tuple

from chat_client import ChatClient


class ClientLifecycleManager:
	"""
	Owns the ordered subscriber list. Clients are connected one after
	another in registration order so a client that depends on another
	sees it already connected.

	There is no skip-and-continue: the first client whose connect() or
	disconnect() raises stops the batch and the exception propagates.
	"""

	def __init__(self):
		self._subscribers: List[ChatClient] = []
		self.logger = logging.getLogger(__name__)

	@property
	def subscribers(self) -> Tuple[ChatClient, ...]:
		return tuple(self._subscribers)

	def register(self, client: ChatClient) -> None:
		self._subscribers.append(client)
		self.logger.debug(f"Registered client {client.name}")

	def connect_all(self) -> None:
		self.logger.info("Connecting clients...")
		for client in tuple(self._subscribers):
			self.logger.info(f"{type(client).__name__} connecting...")
			client.connect()

	def disconnect_all(self) -> None:
		if not self._subscribers:
			return
		self.logger.info("Disconnecting clients...")
		for client in tuple(self._subscribers):
			self.logger.info(f"{type(client).__name__} disconnecting...")
			client.disconnect()
		self._subscribers.clear()

	def __len__(self) -> int:
		return len(self._subscribers)
