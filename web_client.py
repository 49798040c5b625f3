#!/usr/bin/env python3
"""
WebSocket chat client for the relay

Browsers connect to ws://host:port/ws and exchange JSON frames:

	→ {"type": "chat", "user": "Alice", "message": "hello"}
	← {"type": "welcome", "channel_id": 1, "command_prefix": "!"}
	← {"type": "game_message", "player": "Carol", "color": "ffffff", "message": "nice shot"}
	← {"type": "client_message", "client": "Web", "user": "Alice", "message": "hello"}
	← {"type": "command_result", "command": "playing", "ok": true, "result": "..."}
	← {"type": "error", "message": "..."}

Every socket gets its own channel id so command results go back only to
the browser that asked. The server runs under uvicorn in a background
thread; hub callbacks arrive on other threads and are handed to the
socket's event loop with run_coroutine_threadsafe.
"""

import asyncio
import json
import logging
import threading
import time
from dataclasses import replace
from typing import Any, Dict, Optional, Tuple

import uvicorn
from fastapi import FastAPI, WebSocket, WebSocketDisconnect

from chat_client import ChatClient
from relay_commands.registry import CommandInvocation
from relay_events import ClientChatEventArgs, ClientUser, GameChatEventArgs
from relay_hub import ClientMessageOptions, RelayHub


class WebChatClient(ChatClient):
	"""Relay chat client serving browsers over WebSocket"""

	def __init__(self, hub: RelayHub, host: str = "127.0.0.1", port: int = 8765,
				 options: Optional[ClientMessageOptions] = None, name: str = "Web"):
		self.hub = hub
		self.host = host
		self.port = port
		self.options = options or ClientMessageOptions()
		self._name = name

		self._sockets: Dict[int, Tuple[WebSocket, asyncio.AbstractEventLoop]] = {}
		self._next_channel_id = 1
		self._lock = threading.Lock()
		self._attached = False

		self._server: Optional[uvicorn.Server] = None
		self._thread: Optional[threading.Thread] = None

		self.logger = logging.getLogger(__name__)
		self.app = self._create_app()

	@property
	def name(self) -> str:
		return self._name

	@property
	def connection_count(self) -> int:
		return len(self._sockets)

	# Lifecycle

	def attach(self) -> None:
		"""Subscribe to the hub's events without starting the server"""
		if self._attached:
			return
		self.hub.game_message_received.subscribe(self._on_game_message)
		self.hub.client_message_received.subscribe(self._on_client_message)
		self._attached = True

	def detach(self) -> None:
		if not self._attached:
			return
		self.hub.game_message_received.unsubscribe(self._on_game_message)
		self.hub.client_message_received.unsubscribe(self._on_client_message)
		self._attached = False

	def connect(self, startup_timeout: float = 10.0) -> None:
		"""Subscribe to the hub and start serving in a background thread"""
		self.attach()

		config = uvicorn.Config(self.app, host=self.host, port=self.port, log_level="warning")
		self._server = uvicorn.Server(config)
		self._thread = threading.Thread(target=self._server.run, name=f"{self.name}-uvicorn", daemon=True)
		self._thread.start()

		deadline = time.monotonic() + startup_timeout
		while not self._server.started:
			if not self._thread.is_alive():
				self.detach()
				raise RuntimeError(f"{self.name} client failed to start on {self.host}:{self.port}")
			if time.monotonic() > deadline:
				self.detach()
				self._server.should_exit = True
				raise TimeoutError(f"{self.name} client did not start within {startup_timeout}s")
			time.sleep(0.05)

		self.logger.info(f"{self.name} client listening on ws://{self.host}:{self.port}/ws")

	def disconnect(self) -> None:
		self.detach()
		if self._server is not None:
			self._server.should_exit = True
		if self._thread is not None:
			self._thread.join(timeout=5.0)
		self._server = None
		self._thread = None
		self.logger.info(f"{self.name} client stopped")

	# Results and relayed chat

	def handle_command(self, invocation: Optional[CommandInvocation], result: str, channel_id: int = 0) -> None:
		payload = {
			"type": "command_result",
			"command": invocation.name if invocation else None,
			"ok": invocation is not None,
			"result": result,
		}
		if channel_id:
			self._send_to(channel_id, payload)
		else:
			self._broadcast(payload)

	def _on_game_message(self, sender, event: GameChatEventArgs) -> None:
		delivered = self._broadcast({
			"type": "game_message",
			"player": event.player.name,
			"color": event.color.to_hex(),
			"message": event.message,
		})
		if delivered:
			self.hub.game_message_sent.invoke(self, event)

	def _on_client_message(self, sender, event: ClientChatEventArgs) -> None:
		delivered = self._broadcast({
			"type": "client_message",
			"client": event.user.client,
			"user": event.user.username,
			"message": event.message,
		})
		if delivered:
			self.hub.client_message_sent.invoke(self, event)

	# Socket bookkeeping

	def _add_socket(self, websocket: WebSocket) -> int:
		with self._lock:
			channel_id = self._next_channel_id
			self._next_channel_id += 1
			self._sockets[channel_id] = (websocket, asyncio.get_running_loop())
		self.logger.info(f"WebSocket client connected (channel {channel_id}). Total: {len(self._sockets)}")
		return channel_id

	def _remove_socket(self, channel_id: int) -> None:
		with self._lock:
			removed = self._sockets.pop(channel_id, None)
		if removed:
			self.logger.info(f"WebSocket client disconnected (channel {channel_id}). Remaining: {len(self._sockets)}")

	def _send_to(self, channel_id: int, payload: Dict[str, Any]) -> bool:
		entry = self._sockets.get(channel_id)
		if entry is None:
			self.logger.debug(f"Channel {channel_id} is gone, dropping {payload['type']}")
			return False
		websocket, loop = entry
		asyncio.run_coroutine_threadsafe(self._send(channel_id, websocket, payload), loop)
		return True

	def _broadcast(self, payload: Dict[str, Any]) -> int:
		with self._lock:
			channel_ids = list(self._sockets)
		return sum(1 for channel_id in channel_ids if self._send_to(channel_id, payload))

	async def _send(self, channel_id: int, websocket: WebSocket, payload: Dict[str, Any]) -> None:
		try:
			await websocket.send_json(payload)
		except (WebSocketDisconnect, RuntimeError) as e:
			self.logger.warning(f"Failed to send to channel {channel_id}: {e}")
			self._remove_socket(channel_id)
		except Exception:
			# The future from run_coroutine_threadsafe is never awaited
			self.logger.exception(f"Unexpected error sending {payload.get('type')} to channel {channel_id}")
			self._remove_socket(channel_id)

	# Inbound frames

	async def _handle_frame(self, websocket: WebSocket, channel_id: int, data: str) -> None:
		try:
			frame = json.loads(data)
		except json.JSONDecodeError:
			await websocket.send_json({"type": "error", "message": "Invalid JSON received"})
			return

		if not isinstance(frame, dict) or frame.get("type") != "chat":
			await websocket.send_json({"type": "error", "message": "Expected a chat frame"})
			return

		username = frame.get("user")
		message = frame.get("message")
		if not isinstance(username, str) or not username.strip():
			await websocket.send_json({"type": "error", "message": "Missing user"})
			return
		if not isinstance(message, str) or not message.strip():
			await websocket.send_json({"type": "error", "message": "Missing message"})
			return

		user = ClientUser(client=self.name, username=username.strip(), channel_id=channel_id)
		options = replace(self.options, source_channel_id=channel_id)
		try:
			await asyncio.to_thread(self.hub.on_client_text_produced, self, user, message.strip(), options)
		except Exception as e:
			self.logger.exception(f"Error relaying message from {user.username}")
			await websocket.send_json({"type": "error", "message": f"Failed to relay message: {e}"})

	def _create_app(self) -> FastAPI:
		app = FastAPI(title=f"{self.name} chat relay client")

		@app.websocket("/ws")
		async def websocket_endpoint(websocket: WebSocket):
			await websocket.accept()
			channel_id = self._add_socket(websocket)
			try:
				await websocket.send_json({
					"type": "welcome",
					"channel_id": channel_id,
					"command_prefix": self.options.command_prefix,
				})
				while True:
					data = await websocket.receive_text()
					await self._handle_frame(websocket, channel_id, data)
			except WebSocketDisconnect:
				pass
			finally:
				self._remove_socket(channel_id)

		@app.get("/api/status")
		async def get_status():
			return {
				"name": self.name,
				"connections": self.connection_count,
				"command_prefix": self.options.command_prefix,
			}

		return app
