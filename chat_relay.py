#!/usr/bin/env python3
"""
Game chat relay with terminal console

Runs a local game server stand-in, the relay hub and the configured
chat clients. Lines typed into the terminal are game chat from the
host player; everything said in game (including relayed client chat)
is printed back.

Game chat   → RelayHub.on_game_text_produced → game_message_received → clients
Client chat → RelayHub.on_client_text_produced → command result, or game broadcast

Console commands:
	/join <name>		add a player to the game
	/leave <slot>		remove a player
	/as <slot> <text>	speak as another player
	/who				list players
	/quit				shut down
"""

import logging
import sys
import threading
from typing import List, Optional, TextIO

from config_manager import RelayConfig, setup_configuration, setup_logging
from game_bridge import LocalGameServer
from relay_commands import create_command_registry
from relay_hub import ClientMessageOptions, RelayHub
from web_client import WebChatClient


class TerminalGameConsole:
	"""Reads game chat for the host player from a text stream"""

	def __init__(self, game: LocalGameServer, host_name: str = "Server",
				 stream: Optional[TextIO] = None, output: Optional[TextIO] = None):
		self.game = game
		self.stream = stream or sys.stdin
		self.output = output or sys.stdout
		self.host = game.join(host_name)
		self.running = False
		self.logger = logging.getLogger(__name__)

	def show(self, line: str) -> None:
		print(f"[{self.game.world_name}] {line}", file=self.output, flush=True)

	def run(self) -> None:
		"""Process lines until /quit or end of input"""
		self.running = True
		while self.running:
			line = self.stream.readline()
			if not line:
				break
			line = line.strip()
			if not line:
				continue
			try:
				self.handle_line(line)
			except Exception as e:
				self.logger.error(f"Console error: {e}")
		self.running = False

	def stop(self) -> None:
		self.running = False

	def handle_line(self, line: str) -> None:
		if not line.startswith('/'):
			self.game.player_chat(self.host.index, line)
			return

		command, _, rest = line[1:].partition(' ')
		command = command.lower()
		rest = rest.strip()

		if command == 'quit':
			self.stop()
		elif command == 'join' and rest:
			player = self.game.join(rest)
			self.show(f"{player.name} has joined. (slot {player.index})")
		elif command == 'leave' and rest.isdigit():
			self.game.leave(int(rest))
		elif command == 'as':
			slot, _, text = rest.partition(' ')
			if not slot.isdigit() or not text.strip():
				self.show("Usage: /as <slot> <text>")
				return
			self.game.player_chat(int(slot), text.strip())
		elif command == 'who':
			players = self.game.online_players()
			self.show(", ".join(f"{p.index}:{p.name}" for p in players) or "Nobody online")
		else:
			self.show(f"Unknown console command: /{command}")


def build_relay(config: RelayConfig, display=None):
	"""Wire game server, command registry, hub and clients from configuration"""
	game = LocalGameServer(
		world_name=config.game.world_name,
		max_players=config.game.max_players,
		display=display
	)
	registry = create_command_registry(game)
	hub = RelayHub(game, registry)
	game.attach(hub)

	if config.web.enabled:
		options = ClientMessageOptions(
			command_prefix=config.web_command_prefix(),
			client_prefix=config.web.client_prefix
		)
		hub.register_client(WebChatClient(
			hub,
			host=config.web.host,
			port=config.web.port,
			options=options,
			name=config.web.name
		))

	return game, hub


def main(argv: Optional[List[str]] = None) -> int:
	config, should_exit, _ = setup_configuration(argv)
	if should_exit:
		return 0 if config is None else 1

	setup_logging(config.console)
	logger = logging.getLogger("chat_relay")

	console_ref = {}

	def display(line):
		console = console_ref.get('console')
		if console:
			console.show(line)

	game, hub = build_relay(config, display=display)
	console = TerminalGameConsole(game, host_name=config.game.host_name)
	console_ref['console'] = console

	try:
		hub.connect_all()
	except Exception as e:
		logger.error(f"Failed to connect clients: {e}")
		hub.disconnect_all()
		return 1

	logger.info(f"Relay running for {game.world_name} with {len(hub.subscribers)} client(s). Type /quit to exit.")

	input_thread = threading.Thread(target=console.run, name="console", daemon=True)
	input_thread.start()
	try:
		while input_thread.is_alive():
			input_thread.join(timeout=0.5)
	except KeyboardInterrupt:
		console.stop()
	finally:
		hub.disconnect_all()
		logger.info("Relay stopped")

	return 0


if __name__ == "__main__":
	sys.exit(main())
