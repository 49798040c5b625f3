#!/usr/bin/env python3
"""
Configuration system for the game chat relay
Supports YAML files, CLI overrides, and programmatic access
"""

import argparse
import logging
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class RelaySection:
	"""Settings shared by every client"""
	command_prefix: str = "!"

	def to_dict(self) -> Dict[str, Any]:
		return {
			'command_prefix': self.command_prefix,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'RelaySection':
		return cls(
			command_prefix=data.get('command_prefix', '!'),
		)


@dataclass
class GameSection:
	"""Local game server settings"""
	world_name: str = "World"
	host_name: str = "Server"		# name used for lines typed into the console
	max_players: int = 255

	def to_dict(self) -> Dict[str, Any]:
		return {
			'world_name': self.world_name,
			'host_name': self.host_name,
			'max_players': self.max_players,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'GameSection':
		return cls(
			world_name=data.get('world_name', 'World'),
			host_name=data.get('host_name', 'Server'),
			max_players=data.get('max_players', 255),
		)


@dataclass
class WebClientSection:
	"""WebSocket chat client settings"""
	enabled: bool = True
	host: str = "127.0.0.1"
	port: int = 8765
	name: str = "Web"
	command_prefix: str = ""		# empty = use relay.command_prefix
	client_prefix: str = "[Web] "

	def to_dict(self) -> Dict[str, Any]:
		return {
			'enabled': self.enabled,
			'host': self.host,
			'port': self.port,
			'name': self.name,
			'command_prefix': self.command_prefix,
			'client_prefix': self.client_prefix,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'WebClientSection':
		return cls(
			enabled=data.get('enabled', True),
			host=data.get('host', '127.0.0.1'),
			port=data.get('port', 8765),
			name=data.get('name', 'Web'),
			command_prefix=data.get('command_prefix', '') or '',
			client_prefix=data.get('client_prefix', '[Web] ') or '',
		)


@dataclass
class ConsoleConfig:
	"""Console messages logging level configuration"""
	verbose: bool = False
	quiet: bool = False
	log_file: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			'verbose': self.verbose,
			'quiet': self.quiet,
			'log_file': self.log_file,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'ConsoleConfig':
		return cls(
			verbose=data.get('verbose', False),
			quiet=data.get('quiet', False),
			log_file=data.get('log_file'),
		)


@dataclass
class RelayConfig:
	"""Complete configuration for the chat relay"""
	relay: RelaySection = field(default_factory=RelaySection)
	game: GameSection = field(default_factory=GameSection)
	web: WebClientSection = field(default_factory=WebClientSection)
	console: ConsoleConfig = field(default_factory=ConsoleConfig)

	config_version: str = "1.0"
	description: str = "Game Chat Relay Configuration"

	def web_command_prefix(self) -> str:
		"""Command prefix the web client should use"""
		return self.web.command_prefix or self.relay.command_prefix

	def to_dict(self) -> Dict[str, Any]:
		"""Convert to dictionary for YAML serialization"""
		return {
			'config_version': self.config_version,
			'description': self.description,
			'relay': self.relay.to_dict(),
			'game': self.game.to_dict(),
			'web': self.web.to_dict(),
			'console': self.console.to_dict(),
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> 'RelayConfig':
		"""Create from dictionary (YAML loading). Missing sections keep defaults."""
		if not isinstance(data, dict):
			raise ValueError(f"Configuration must be a mapping, got {type(data).__name__}")

		config = cls()
		if 'config_version' in data:
			config.config_version = str(data['config_version'])
		if 'description' in data:
			config.description = data['description']

		if isinstance(data.get('relay'), dict):
			config.relay = RelaySection.from_dict(data['relay'])
		if isinstance(data.get('game'), dict):
			config.game = GameSection.from_dict(data['game'])
		if isinstance(data.get('web'), dict):
			config.web = WebClientSection.from_dict(data['web'])
		if isinstance(data.get('console'), dict):
			config.console = ConsoleConfig.from_dict(data['console'])

		return config


class ConfigurationManager:
	"""Manages configuration loading, merging, validation and saving"""

	def __init__(self):
		self.config = RelayConfig()
		self.config_file_path: Optional[Path] = None
		self.logger = logging.getLogger(__name__)

		# Standard config file locations (in order of preference)
		self.config_search_paths = [
			Path.cwd() / "chat_relay.yaml",
			Path.cwd() / "config" / "chat_relay.yaml",
			Path.home() / ".config" / "chat_relay" / "config.yaml",
			Path("/etc/chat_relay/config.yaml"),
		]

	def load_config(self, config_file: Optional[str] = None) -> RelayConfig:
		"""
		Load configuration from file with fallback chain

		Args:
			config_file: Specific config file path, or None for auto-discovery

		Returns:
			Loaded configuration object (defaults if nothing was found)
		"""
		if config_file:
			config_path = Path(config_file)
			if config_path.exists():
				self.config = self._load_yaml_file(config_path)
				self.config_file_path = config_path
				self.logger.info(f"Loaded config from: {config_path}")
			else:
				self.logger.warning(f"Config file not found: {config_path}")
				self.logger.info("Using default configuration")
		else:
			for path in self.config_search_paths:
				if path.exists():
					self.config = self._load_yaml_file(path)
					self.config_file_path = path
					self.logger.info(f"Auto-discovered config: {path}")
					break
			else:
				self.logger.info("No config file found, using defaults")

		return self.config

	def _load_yaml_file(self, file_path: Path) -> RelayConfig:
		"""Load configuration from a YAML file, falling back to defaults on error"""
		try:
			with open(file_path, 'r', encoding='utf-8') as f:
				yaml_data = yaml.safe_load(f) or {}
			return RelayConfig.from_dict(yaml_data)
		except (OSError, UnicodeDecodeError, yaml.YAMLError, ValueError) as e:
			self.logger.error(f"Error loading config file {file_path}: {e}")
			return RelayConfig()

	def merge_cli_args(self, args: argparse.Namespace) -> RelayConfig:
		"""
		Merge CLI arguments into configuration (CLI takes precedence)

		Args:
			args: Parsed command line arguments

		Returns:
			Updated configuration
		"""
		if getattr(args, 'prefix', None):
			self.config.relay.command_prefix = args.prefix
		if getattr(args, 'world', None):
			self.config.game.world_name = args.world

		if getattr(args, 'web_host', None):
			self.config.web.host = args.web_host
		if getattr(args, 'web_port', None) is not None:
			self.config.web.port = args.web_port
		if getattr(args, 'no_web', False):
			self.config.web.enabled = False

		if getattr(args, 'verbose', False):
			self.config.console.verbose = True
		if getattr(args, 'quiet', False):
			self.config.console.quiet = True
		if getattr(args, 'log_file', None):
			self.config.console.log_file = args.log_file

		return self.config

	def save_config(self, file_path: Optional[str] = None) -> bool:
		"""
		Save current configuration to a YAML file

		Args:
			file_path: Target file path, or None to use loaded file path

		Returns:
			True if saved successfully
		"""
		if file_path:
			target_path = Path(file_path)
		elif self.config_file_path:
			target_path = self.config_file_path
		else:
			target_path = Path("chat_relay.yaml")

		try:
			target_path.parent.mkdir(parents=True, exist_ok=True)
			with open(target_path, 'w', encoding='utf-8') as f:
				f.write("# Game Chat Relay Configuration\n")
				f.write(f"# Version: {self.config.config_version}\n\n")
				yaml.safe_dump(self.config.to_dict(), f,
							   default_flow_style=False,
							   sort_keys=False,
							   allow_unicode=True,
							   indent=2)
			self.logger.info(f"Configuration saved to: {target_path}")
			return True
		except OSError as e:
			self.logger.error(f"Error saving config to {target_path}: {e}")
			return False

	def create_sample_config(self, file_path: str = "chat_relay_sample.yaml") -> bool:
		"""Create a sample configuration file with comments"""
		try:
			with open(file_path, 'w', encoding='utf-8') as f:
				f.write(self._generate_sample_yaml())
			self.logger.info(f"Sample configuration created: {file_path}")
			return True
		except OSError as e:
			self.logger.error(f"Error creating sample config: {e}")
			return False

	def _generate_sample_yaml(self) -> str:
		"""Generate sample YAML with comments"""
		return """# Game Chat Relay Configuration File

# =============================================================================
# RELAY SETTINGS
# =============================================================================
relay:
  command_prefix: "!"             # Messages starting with this are commands

# =============================================================================
# GAME SETTINGS
# =============================================================================
game:
  world_name: "World"             # Shown by the !world command
  host_name: "Server"             # Name for lines typed into the console
  max_players: 255

# =============================================================================
# WEB CHAT CLIENT
# =============================================================================
web:
  enabled: true
  host: "127.0.0.1"
  port: 8765                      # WebSocket endpoint: ws://host:port/ws
  name: "Web"
  command_prefix: ""              # Empty = use relay.command_prefix
  client_prefix: "[Web] "         # Put in front of web messages shown in game

# =============================================================================
# CONSOLE MESSAGES LOGGING LEVEL
# =============================================================================
console:
  verbose: false                  # Verbose output (more detail)
  quiet: false                    # Quiet mode (warnings and errors only)
  log_file: null                  # Also write the log to this file

config_version: "1.0"
description: "Game Chat Relay Configuration"
"""

	def validate_config(self) -> tuple[bool, list[str]]:
		"""
		Validate configuration for common issues

		Returns:
			(is_valid, list_of_errors)
		"""
		errors = []

		# Leading whitespace is stripped from chat lines before matching, so
		# such a prefix could never match. Trailing whitespace is allowed ("tcr ").
		if not self.config.relay.command_prefix or self.config.relay.command_prefix != self.config.relay.command_prefix.lstrip():
			errors.append(f"Invalid command prefix: '{self.config.relay.command_prefix}'")

		if self.config.web.command_prefix and self.config.web.command_prefix != self.config.web.command_prefix.lstrip():
			errors.append(f"Invalid web command prefix: '{self.config.web.command_prefix}'")

		if not isinstance(self.config.web.port, int) or not (1 <= self.config.web.port <= 65535):
			errors.append(f"Invalid web port: {self.config.web.port}")

		if not self.config.web.name:
			errors.append("Web client name must be set")

		if not self.config.game.host_name:
			errors.append("Game host name must be set")

		if not isinstance(self.config.game.max_players, int) or self.config.game.max_players < 1:
			errors.append(f"Invalid max_players: {self.config.game.max_players}")

		if self.config.console.verbose and self.config.console.quiet:
			errors.append("Console cannot be both verbose and quiet")

		return len(errors) == 0, errors

	def get_config(self) -> RelayConfig:
		"""Get a copy of the current configuration"""
		return deepcopy(self.config)

	def update_config(self, updates: Dict[str, Any]) -> bool:
		"""
		Update configuration programmatically

		Args:
			updates: Dictionary of configuration updates in dot notation
					e.g., {"web.port": 9000, "relay.command_prefix": "."}

		Returns:
			True if all updates applied successfully
		"""
		try:
			for key, value in updates.items():
				self._set_nested_attr(self.config, key, value)
			return True
		except AttributeError as e:
			self.logger.error(f"Error updating config: {e}")
			return False

	def _set_nested_attr(self, obj, attr_path: str, value):
		"""Set nested attribute using dot notation"""
		parts = attr_path.split('.')
		for part in parts[:-1]:
			obj = getattr(obj, part)
		if not hasattr(obj, parts[-1]):
			raise AttributeError(f"Unknown config key: {attr_path}")
		setattr(obj, parts[-1], value)


def setup_logging(console: ConsoleConfig) -> None:
	"""Configure the root logger from the console section"""
	if console.verbose:
		level = logging.DEBUG
	elif console.quiet:
		level = logging.WARNING
	else:
		level = logging.INFO

	handlers = [logging.StreamHandler()]
	if console.log_file:
		handlers.append(logging.FileHandler(console.log_file, encoding='utf-8'))

	logging.basicConfig(
		level=level,
		format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
		handlers=handlers,
		force=True
	)


def create_argument_parser():
	"""Argument parser for the relay"""
	parser = argparse.ArgumentParser(
		description='Game Chat Relay',
		formatter_class=argparse.RawDescriptionHelpFormatter,
		epilog="""
Examples:
  %(prog)s                                 # Default settings, web client on 127.0.0.1:8765
  %(prog)s --prefix .                      # Use . as the command prefix
  %(prog)s --web-port 9000 --world Arena   # Different port and world name
  %(prog)s --no-web                        # Console only
  %(prog)s -c my_relay.yaml                # Use specific config file
  %(prog)s --create-config sample.yaml     # Create sample config file

Configuration:
  Configuration is loaded in this order (later overrides earlier):
  1. Built-in defaults
  2. Configuration file (YAML)
  3. Command line arguments

  Config file search order:
  - chat_relay.yaml (current directory)
  - config/chat_relay.yaml
  - ~/.config/chat_relay/config.yaml
  - /etc/chat_relay/config.yaml
		"""
	)

	config_group = parser.add_argument_group('Configuration')
	config_group.add_argument(
		'-c', '--config',
		type=str,
		help='Configuration file path (YAML format)'
	)
	config_group.add_argument(
		'--create-config',
		type=str,
		metavar='FILE',
		help='Create sample configuration file and exit'
	)
	config_group.add_argument(
		'--save-config',
		type=str,
		metavar='FILE',
		help='Save current configuration to file'
	)

	relay_group = parser.add_argument_group('Relay Settings')
	relay_group.add_argument(
		'--prefix',
		type=str,
		help='Command prefix (default: !)'
	)
	relay_group.add_argument(
		'--world',
		type=str,
		help='World name shown by the world command'
	)

	web_group = parser.add_argument_group('Web Client')
	web_group.add_argument(
		'--web-host',
		type=str,
		help='Host for the WebSocket chat client'
	)
	web_group.add_argument(
		'--web-port',
		type=int,
		help='Port for the WebSocket chat client'
	)
	web_group.add_argument(
		'--no-web',
		action='store_true',
		help='Do not start the WebSocket chat client'
	)

	debug_group = parser.add_argument_group('Debug Options')
	debug_group.add_argument(
		'-v', '--verbose',
		action='store_true',
		help='Enable verbose debug output'
	)
	debug_group.add_argument(
		'-q', '--quiet',
		action='store_true',
		help='Quiet mode (minimal output)'
	)
	debug_group.add_argument(
		'--log-file',
		type=str,
		help='Log file path'
	)

	return parser


def setup_configuration(argv=None) -> tuple[Optional[RelayConfig], bool, Optional[ConfigurationManager]]:
	"""
	Setup configuration system with CLI integration

	Args:
		argv: Command line arguments (None for sys.argv)

	Returns:
		(config_object, should_exit, config_manager)
	"""
	parser = create_argument_parser()
	args = parser.parse_args(argv)

	manager = ConfigurationManager()

	if args.create_config:
		manager.create_sample_config(args.create_config)
		return None, True, None

	manager.load_config(args.config)
	config = manager.merge_cli_args(args)

	is_valid, errors = manager.validate_config()
	if not is_valid:
		logger = logging.getLogger(__name__)
		logger.error("Configuration errors:")
		for error in errors:
			logger.error(f"  ✗ {error}")
		return config, True, manager

	if args.save_config:
		manager.save_config(args.save_config)

	return config, False, manager
