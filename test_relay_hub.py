"""
Tests for the relay hub: routing, events and client lifecycle.

Run with:  python -m pytest test_relay_hub.py -v
"""

import logging
import threading

import pytest

from chat_client import ChatClient
from game_bridge import LocalGameServer
from relay_commands import create_command_registry
from relay_commands.registry import Command
from relay_events import ClientChatEventArgs, ClientUser, Color, GameChatEventArgs
from relay_hub import ClientMessageOptions, RelayHub


class RecordingClient(ChatClient):
    """Chat client double that records everything the hub does to it."""

    def __init__(self, label="Recording", log=None, fail_on=None):
        self.label = label
        self.log = log if log is not None else []
        self.fail_on = fail_on
        self.results = []

    @property
    def name(self):
        return self.label

    def connect(self):
        if self.fail_on == "connect":
            raise ConnectionError(f"{self.label} cannot connect")
        self.log.append(("connect", self.label))

    def disconnect(self):
        if self.fail_on == "disconnect":
            raise ConnectionError(f"{self.label} cannot disconnect")
        self.log.append(("disconnect", self.label))

    def handle_command(self, invocation, result, channel_id=0):
        self.results.append((invocation, result, channel_id))


class BoomCommand(Command):
    @property
    def name(self):
        return "boom"

    @property
    def help_text(self):
        return "boom - Always fails"

    def execute(self, args, user, prefix="!"):
        raise RuntimeError("kaboom")


@pytest.fixture
def game():
    server = LocalGameServer(world_name="Arena")
    server.join("Carol")
    server.join("Dave")
    return server


@pytest.fixture
def hub(game):
    registry = create_command_registry(game)
    registry.register(BoomCommand())
    relay = RelayHub(game, registry)
    game.attach(relay)
    return relay


@pytest.fixture
def client():
    return RecordingClient()


def capture(stream):
    events = []
    stream.subscribe(lambda sender, event: events.append((sender, event)))
    return events


BOB = ClientUser(client="Recording", username="Bob")
ALICE = ClientUser(client="Recording", username="Alice", channel_id=42)


# ============================================================
# Client → game
# ============================================================

class TestClientChatPath:
    """Plain client messages are broadcast into the game and reported once."""

    def test_bob_hello_world(self, hub, game, client):
        received = capture(hub.client_message_received)

        hub.on_client_text_produced(client, BOB, "hello world", ClientMessageOptions(command_prefix="!"))

        assert game.inbox(0) == ["<Bob> hello world"]
        assert game.inbox(1) == ["<Bob> hello world"]
        assert len(received) == 1
        sender, event = received[0]
        assert sender is client
        assert event == ClientChatEventArgs(BOB, "hello world")
        assert client.results == []

    def test_client_prefix(self, hub, game, client):
        hub.on_client_text_produced(client, BOB, "hi", ClientMessageOptions(client_prefix="[Web] "))
        assert game.inbox(0) == ["[Web] <Bob> hi"]

    def test_default_options(self, hub, game, client):
        hub.on_client_text_produced(client, BOB, "hi")
        assert game.inbox(0) == ["<Bob> hi"]

    def test_unknown_name_is_chat(self, hub, game, client):
        received = capture(hub.client_message_received)
        hub.on_client_text_produced(client, BOB, "!helpme please")
        assert game.inbox(0) == ["<Bob> !helpme please"]
        assert len(received) == 1
        assert client.results == []

    @pytest.mark.parametrize("text", ["hello", "a!help", "  ", "!", "gg wp", "100% !playing"])
    def test_non_commands_take_chat_path_once(self, hub, client, text):
        received = capture(hub.client_message_received)
        hub.on_client_text_produced(client, BOB, text)
        assert len(received) == 1
        assert received[0][1].message == text
        assert client.results == []

    def test_broadcast_is_not_reprocessed(self, hub, game, client):
        """A relayed line that looks like a command is only displayed."""
        game_events = capture(hub.game_message_received)
        hub.on_client_text_produced(client, BOB, "! help", ClientMessageOptions(client_prefix="!help "))
        assert game.inbox(0) == ["!help <Bob> ! help"]
        assert game_events == []
        assert client.results == []

    def test_message_sent_streams_not_raised_by_hub(self, hub, client):
        sent = capture(hub.client_message_sent)
        hub.on_client_text_produced(client, BOB, "hello")
        assert sent == []


class TestClientCommandPath:
    """Commands are answered to the sender and never broadcast."""

    def test_alice_help(self, hub, game, client):
        received = capture(hub.client_message_received)

        hub.on_client_text_produced(client, ALICE, "!help", ClientMessageOptions(command_prefix="!"))

        assert received == []
        assert game.inbox(0) == []
        assert len(client.results) == 1
        invocation, result, channel_id = client.results[0]
        assert invocation.name == "help"
        assert invocation.user == ALICE
        assert result
        assert channel_id == 0

    def test_channel_id_is_passed_back(self, hub, client):
        options = ClientMessageOptions(command_prefix="!", source_channel_id=42)
        hub.on_client_text_produced(client, ALICE, "!playing", options)
        invocation, result, channel_id = client.results[0]
        assert channel_id == 42
        assert result == "2 players online: Carol, Dave"

    def test_custom_prefix(self, hub, game, client):
        hub.on_client_text_produced(client, ALICE, "!world", ClientMessageOptions(command_prefix="."))
        assert client.results == []
        assert game.inbox(0) == ["<Alice> !world"]

        hub.on_client_text_produced(client, ALICE, ".world", ClientMessageOptions(command_prefix="."))
        assert client.results[0][1] == "World: Arena | Players: 2"

    def test_help_lists_the_prefix_the_client_uses(self, hub, game, client):
        hub.on_client_text_produced(client, ALICE, ".help", ClientMessageOptions(command_prefix="."))
        result = client.results[0][1]
        assert "  .help - List available commands" in result
        assert "  .playing - Show who is online" in result
        assert "  .world - Show world name and player count" in result
        assert "!" not in result

        # Every listed line runs as a command on the same client
        hub.on_client_text_produced(client, ALICE, ".world", ClientMessageOptions(command_prefix="."))
        assert client.results[1][1] == "World: Arena | Players: 2"
        assert game.inbox(0) == []

    def test_command_result_goes_to_sender_only(self, hub):
        asker = RecordingClient("Asker")
        bystander = RecordingClient("Bystander")
        hub.register_client(asker)
        hub.register_client(bystander)

        hub.on_client_text_produced(asker, ALICE, "!world")

        assert len(asker.results) == 1
        assert bystander.results == []

    def test_unknown_command_reported_as_text(self, hub, client):
        """Registry out of sync with classification still answers the sender."""
        hub.command_registry.is_command = lambda text, prefix: True
        received = capture(hub.client_message_received)

        hub.on_client_text_produced(client, ALICE, "!dance", ClientMessageOptions(source_channel_id=7))

        assert received == []
        invocation, result, channel_id = client.results[0]
        assert invocation is None
        assert "Unknown command '!dance'" in result
        assert channel_id == 7

    def test_command_errors_propagate(self, hub, game, client):
        received = capture(hub.client_message_received)
        with pytest.raises(RuntimeError, match="kaboom"):
            hub.on_client_text_produced(client, ALICE, "!boom")
        assert received == []
        assert client.results == []
        assert game.inbox(0) == []

    def test_handle_command_errors_propagate(self, hub):
        class Broken(RecordingClient):
            def handle_command(self, invocation, result, channel_id=0):
                raise IOError("socket closed")

        with pytest.raises(IOError):
            hub.on_client_text_produced(Broken(), ALICE, "!help")


# ============================================================
# Game → clients
# ============================================================

class TestGamePath:

    def test_carol_formatted_text(self, hub, game):
        received = capture(hub.game_message_received)
        carol = game.get_player(0)
        red = Color(255, 0, 0)

        hub.on_game_text_produced(game, carol, "[c/00FF00:nice] shot", red)

        assert len(received) == 1
        sender, event = received[0]
        assert sender is game
        assert event == GameChatEventArgs(carol, red, "nice shot")

    def test_default_color_is_white(self, hub, game):
        received = capture(hub.game_message_received)
        hub.on_game_text_produced(game, game.get_player(0), "hi")
        assert received[0][1].color == Color.WHITE

    def test_no_listeners_is_noop(self, hub, game):
        hub.on_game_text_produced(game, game.get_player(0), "anyone?")

    def test_listeners_called_in_registration_order(self, hub, game):
        order = []
        hub.game_message_received.subscribe(lambda s, e: order.append("first"))
        hub.game_message_received.subscribe(lambda s, e: order.append("second"))
        hub.game_message_received.subscribe(lambda s, e: order.append("third"))
        hub.on_game_text_produced(game, game.get_player(0), "hi")
        assert order == ["first", "second", "third"]

    def test_listener_errors_propagate(self, hub, game):
        def bad_listener(sender, event):
            raise ValueError("listener failed")

        hub.game_message_received.subscribe(bad_listener)
        with pytest.raises(ValueError):
            hub.on_game_text_produced(game, game.get_player(0), "hi")

    def test_player_chat_goes_through_hub(self, hub, game):
        received = capture(hub.game_message_received)
        game.player_chat(1, "[n:Carol] look out")
        assert received[0][1].message == "<Carol> look out"
        assert received[0][1].player.name == "Dave"


# ============================================================
# Event streams
# ============================================================

class TestEventStream:

    def test_unsubscribe(self, hub, game):
        calls = []

        def listener(sender, event):
            calls.append(event)

        hub.game_message_received.subscribe(listener)
        assert hub.game_message_received.unsubscribe(listener)
        assert not hub.game_message_received.unsubscribe(listener)
        hub.on_game_text_produced(game, game.get_player(0), "hi")
        assert calls == []

    def test_subscribe_during_invoke_affects_next_message_only(self, hub, game):
        calls = []

        def late(sender, event):
            calls.append("late")

        def first(sender, event):
            calls.append("first")
            hub.game_message_received.subscribe(late)

        hub.game_message_received.subscribe(first)
        hub.on_game_text_produced(game, game.get_player(0), "one")
        assert calls == ["first"]

    def test_concurrent_subscribe(self, hub):
        stream = hub.client_message_sent

        def add_many():
            for _ in range(200):
                stream.subscribe(lambda s, e: None)

        threads = [threading.Thread(target=add_many) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(stream) == 800


# ============================================================
# Client lifecycle
# ============================================================

class TestLifecycle:

    def test_connect_all_in_registration_order(self, hub):
        log = []
        clients = [RecordingClient(f"c{i}", log) for i in range(4)]
        for c in clients:
            hub.register_client(c)

        hub.connect_all()

        assert log == [("connect", "c0"), ("connect", "c1"), ("connect", "c2"), ("connect", "c3")]

    def test_duplicates_allowed(self, hub):
        log = []
        c = RecordingClient("dup", log)
        hub.register_client(c)
        hub.register_client(c)
        hub.connect_all()
        assert log == [("connect", "dup"), ("connect", "dup")]

    def test_connect_all_logs_each_client(self, hub, caplog):
        class WebRelayClient(RecordingClient):
            pass

        hub.register_client(RecordingClient("a"))
        hub.register_client(WebRelayClient("b"))

        with caplog.at_level(logging.INFO, logger="client_lifecycle"):
            hub.connect_all()

        messages = [
            r.getMessage() for r in caplog.records
            if r.name == "client_lifecycle" and r.levelno == logging.INFO
        ]
        assert messages == [
            "Connecting clients...",
            "RecordingClient connecting...",
            "WebRelayClient connecting...",
        ]

    def test_disconnect_all_clears_registry(self, hub):
        log = []
        for i in range(3):
            hub.register_client(RecordingClient(f"c{i}", log))
        hub.connect_all()
        hub.disconnect_all()

        assert log[3:] == [("disconnect", "c0"), ("disconnect", "c1"), ("disconnect", "c2")]
        assert len(hub.subscribers) == 0

    def test_disconnect_all_empty_is_noop(self, hub):
        hub.disconnect_all()
        hub.disconnect_all()
        assert len(hub.subscribers) == 0

    def test_connect_failure_stops_batch(self, hub):
        log = []
        hub.register_client(RecordingClient("a", log))
        hub.register_client(RecordingClient("b", log, fail_on="connect"))
        hub.register_client(RecordingClient("c", log))

        with pytest.raises(ConnectionError):
            hub.connect_all()
        assert log == [("connect", "a")]

    def test_disconnect_failure_propagates(self, hub):
        log = []
        hub.register_client(RecordingClient("a", log, fail_on="disconnect"))
        with pytest.raises(ConnectionError):
            hub.disconnect_all()
        assert len(hub.subscribers) == 1

    def test_subscribers_snapshot_is_read_only(self, hub, client):
        hub.register_client(client)
        snapshot = hub.subscribers
        assert snapshot == (client,)
        with pytest.raises(AttributeError):
            snapshot.append(client)
