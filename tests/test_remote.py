"""
Tests for RemoteClient, the per-module session facade.
"""

import asyncio
from unittest.mock import Mock

import pytest

from allremote.exceptions import NotConnectedError, TransportError
from allremote.models import ConnectionState
from allremote.protocol.frames import (
    encode_command_frame,
    encode_key_frame,
    encode_release_frame,
)
from allremote.protocol.keys import Command, KeyId
from allremote.remote import (
    MSG_COMMAND_FAILED,
    MSG_NOT_CONNECTED,
    MSG_RELEASE_FAILED,
    RemoteClient,
)

from mock_transport import ADDRESS, MockTransport, settle


RELEASE = encode_release_frame()


def make_client(store, timings, transport=None):
    transport = transport or MockTransport()
    client = RemoteClient(
        transport, password_store=store, timings=timings, repeat_interval=0.02
    )
    statuses = []
    client.add_listener(statuses.append)
    return client, transport, statuses


async def connect(client, timings, address=ADDRESS, password="123456"):
    assert client.connect(address, password)
    await settle()
    await asyncio.sleep(timings.auth_timeout * 2)
    assert client.is_connected


class TestKeys:

    @pytest.mark.asyncio
    async def test_press_requires_connection(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)

        assert not client.press("K1")
        assert not client.press_keys(["Up", "Down"])
        assert client.status.error_message == MSG_NOT_CONNECTED
        assert isinstance(client.machine.last_error, NotConnectedError)
        assert transport.writes == []
        assert not client.repeater.is_active

    @pytest.mark.asyncio
    async def test_press_keys_repeats_composite_frame(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        sent = len(transport.writes)

        assert client.press_keys(["Up", "k9"])
        await asyncio.sleep(0.07)
        client.release_all()

        frames = transport.writes[sent:]
        combo = encode_key_frame({KeyId.K1, KeyId.K9})
        assert frames.count(combo) >= 2
        assert frames[-2:] == [RELEASE, RELEASE]

    @pytest.mark.asyncio
    async def test_press_and_release_single_keys(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)

        assert client.press(KeyId.K3)
        assert client.press("Function 1")
        assert client.repeater.held_keys == {KeyId.K3, KeyId.K5}

        assert client.release("K3")
        assert client.repeater.held_keys == {KeyId.K5}
        assert client.release(KeyId.K5)
        await settle()

        assert transport.writes[-2:] == [RELEASE, RELEASE]
        assert not client.repeater.is_active

    @pytest.mark.asyncio
    async def test_unknown_key_is_reported(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        sent = len(transport.writes)

        assert not client.press_keys(["K1", "K17"])
        assert "K17" in client.status.error_message
        assert len(transport.writes) == sent
        assert not client.repeater.is_active

    @pytest.mark.asyncio
    async def test_hold_keys_releases_after_duration(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)

        assert await client.hold_keys(["K2"], 0.05)

        assert encode_key_frame({KeyId.K2}) in transport.writes
        assert transport.writes[-2:] == [RELEASE, RELEASE]
        assert client.repeater.held_keys == frozenset()

    @pytest.mark.asyncio
    async def test_zero_duration_hold_is_a_tap(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        before = len(transport.writes)

        assert await client.hold_keys(["K3"], 0)

        assert transport.writes[before:] == [
            encode_key_frame({KeyId.K3}),
            RELEASE,
            RELEASE,
        ]
        assert not client.repeater.is_active

    @pytest.mark.asyncio
    async def test_release_failure_is_reported(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        client.press("K1")
        transport.accept_writes = False

        assert not client.release_all()
        assert client.status.error_message == MSG_RELEASE_FAILED
        assert isinstance(client.machine.last_error, TransportError)
        assert not client.repeater.is_active

    @pytest.mark.asyncio
    async def test_link_loss_stops_repeat(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)

        client.press("K4")
        await settle()
        transport.simulate_link_lost()
        await settle()

        assert client.state == ConnectionState.DISCONNECTED
        assert not client.repeater.is_active
        assert client.repeater.held_keys == frozenset()
        assert RELEASE not in transport.writes


class TestCommands:

    @pytest.mark.asyncio
    async def test_commands_are_framed(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)

        assert client.request_key_state()
        assert client.disable_board_keys()
        assert client.enable_board_keys()
        assert client.reset_module_password()
        assert client.reboot_module()

        assert transport.writes[-5:] == [
            bytes([0xFF, 0xFF, 0x01]),
            bytes([0xFF, 0xFF, 0x04]),
            bytes([0xFF, 0xFF, 0x05]),
            bytes([0xFF, 0xFF, 0x06]),
            bytes([0xFF, 0xFF, 0x07]),
        ]

    @pytest.mark.asyncio
    async def test_command_requires_connection(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)

        assert not client.send_command(Command.MODULE_REBOOT)
        assert client.status.error_message == MSG_NOT_CONNECTED
        assert transport.writes == []

    @pytest.mark.asyncio
    async def test_rejected_write_reports_failure(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        transport.accept_writes = False

        assert not client.send_command(Command.REQUEST_KEY_STATE)
        assert client.status.error_message == MSG_COMMAND_FAILED
        assert isinstance(client.machine.last_error, TransportError)

    @pytest.mark.asyncio
    async def test_learning_mode_follows_successful_commands(self, store, fast_timings):
        client, transport, statuses = make_client(store, fast_timings)
        await connect(client, fast_timings)

        assert client.enter_learning_mode()
        assert client.learning_mode
        assert statuses[-1].learning_mode
        assert transport.writes[-1] == encode_command_frame(Command.ENTER_LEARNING)

        assert client.exit_learning_mode()
        assert not client.learning_mode
        assert transport.writes[-1] == encode_command_frame(Command.EXIT_LEARNING)

    @pytest.mark.asyncio
    async def test_learning_mode_unchanged_when_send_fails(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        await connect(client, fast_timings)
        transport.accept_writes = False

        assert not client.enter_learning_mode()
        assert not client.learning_mode

    @pytest.mark.asyncio
    async def test_learning_mode_cleared_on_disconnect(self, store, fast_timings):
        client, _, statuses = make_client(store, fast_timings)
        await connect(client, fast_timings)
        client.enter_learning_mode()

        client.disconnect()

        assert not client.learning_mode
        assert statuses[-1].connection_state == ConnectionState.DISCONNECTED
        assert not statuses[-1].learning_mode


class TestSession:

    @pytest.mark.asyncio
    async def test_status_snapshots_reach_listeners(self, store, fast_timings):
        client, _, statuses = make_client(store, fast_timings)
        await connect(client, fast_timings)

        states = [status.connection_state for status in statuses]
        assert ConnectionState.CONNECTING in states
        assert states[-1] == ConnectionState.CONNECTED
        assert statuses[-1].address == ADDRESS
        assert statuses[-1].rssi == -60

    @pytest.mark.asyncio
    async def test_removed_listener_gets_nothing(self, store, fast_timings):
        client, _, _ = make_client(store, fast_timings)
        listener = Mock()
        remove = client.add_listener(listener)
        remove()
        remove()

        client.connect(ADDRESS, "123456")
        await settle()
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_connect_remembers_password(self, store, fast_timings):
        client, _, _ = make_client(store, fast_timings)
        await connect(client, fast_timings, password="abcdef")

        assert store.get(ADDRESS) == "abcdef"
        assert store.get_last_connected_device() == ADDRESS

    @pytest.mark.asyncio
    async def test_auto_connect_uses_last_device_once(self, store, fast_timings):
        store.set("11:22:33:44:55:66", "111111")
        store.set(ADDRESS, "abcdef")
        client, transport, _ = make_client(store, fast_timings)

        assert client.auto_connect()
        await settle()
        assert transport.opened == [ADDRESS]
        assert transport.writes[-1] == b"abcdef"

        client.disconnect()
        assert not client.auto_connect()
        assert transport.opened == [ADDRESS]

    @pytest.mark.asyncio
    async def test_auto_connect_without_history(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)

        assert not client.auto_connect()
        assert transport.opened == []
        assert client.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_retry_with_password(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        client.on_authentication_rejected = Mock()

        client.connect(ADDRESS, "123456")
        await settle()
        transport.simulate_link_lost()
        await settle()
        client.on_authentication_rejected.assert_called_once_with(ADDRESS)

        assert client.retry_with_password("654321")
        await settle()
        await asyncio.sleep(fast_timings.auth_timeout * 2)

        assert client.is_connected
        assert transport.writes[-1] == b"654321"
        assert store.get(ADDRESS) == "654321"

    @pytest.mark.asyncio
    async def test_change_password(self, store, fast_timings):
        client, transport, _ = make_client(store, fast_timings)
        client.on_password_changed = Mock()
        await connect(client, fast_timings)

        assert client.change_password("123456", "654321")

        assert transport.writes[-1] == bytes([0xAA, 0x2D, 0xD4]) + b"654321"
        client.on_password_changed.assert_called_once_with(ADDRESS)
        assert store.get(ADDRESS) is None

    @pytest.mark.asyncio
    async def test_close_disconnects_and_drops_listeners(self, store, fast_timings):
        client, transport, statuses = make_client(store, fast_timings)
        await connect(client, fast_timings)
        client.press("K1")

        client.close()
        count = len(statuses)
        client.connect(ADDRESS, "123456")
        await settle()

        assert transport.close_count >= 1
        assert not client.repeater.is_active
        assert len(statuses) == count
