#!/usr/bin/env python3
"""
Contract every external chat connector implements

A connector is registered with the relay hub, connected and
disconnected as part of the hub's client batch, and receives the
results of commands its users typed. Receiving relayed game chat is
done by subscribing to the hub's event streams in connect().
"""

from abc import ABC, abstractmethod
from typing import Optional

from relay_commands.registry import CommandInvocation


class ChatClient(ABC):
	"""Base class for chat connectors (web, Discord, IRC, ...)"""

	@property
	def name(self) -> str:
		"""Client name shown in logs and in ClientUser.client"""
		return type(self).__name__

	@abstractmethod
	def connect(self) -> None:
		"""Open the connection to the chat backend and subscribe to hub events"""
		...

	@abstractmethod
	def disconnect(self) -> None:
		"""Close the connection and unsubscribe from hub events"""
		...

	@abstractmethod
	def handle_command(self, invocation: Optional[CommandInvocation], result: str, channel_id: int = 0) -> None:
		"""
		Deliver a command result back to the user who issued it

		Args:
			invocation: The executed command, or None if the command was not recognized
			result: Human readable result text
			channel_id: Source channel of the command (0 when the client has no channels)
		"""
		...
