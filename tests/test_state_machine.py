"""
Tests for the connection and authentication state machine.

Each scenario drives a MockTransport through link, discovery and
authentication events and checks the resulting state sequence, the frames
written and the reported messages.
"""

import asyncio

import pytest

from allremote.exceptions import (
    AuthenticationRejected,
    NotConnectedError,
    TimeoutError,
    TransportError,
    ValidationError,
)
from allremote.models import ConnectionState
from allremote.protocol.auth import ExplicitAckPolicy
from allremote.protocol.keys import KeyId
from allremote.protocol.state_machine import (
    MSG_AUTH_REJECTED,
    MSG_AUTH_SEND_FAILED,
    MSG_CONNECTION_TIMEOUT,
    MSG_CURRENT_PASSWORD_WRONG,
    MSG_NOT_CONNECTED,
    MSG_PASSWORD_CHANGED,
    MSG_PASSWORD_CORRECT,
    MSG_PASSWORD_INCORRECT,
    ConnectionStateMachine,
    SessionTimings,
)

from mock_transport import ADDRESS, MockTransport, settle


def make_machine(transport, store, timings, policy=None):
    machine = ConnectionStateMachine(
        transport, password_store=store, timings=timings, policy=policy
    )
    states = []
    machine.on_connection_state_changed = states.append
    return machine, states


async def connect_and_authenticate(machine, timings, password="123456", remember=False):
    assert machine.connect(ADDRESS, password, remember=remember)
    await settle()
    await asyncio.sleep(timings.auth_timeout * 2)


class TestConnectAndAuthenticate:
    """Connecting -> Authenticating -> Connected."""

    @pytest.mark.asyncio
    async def test_auth_timeout_counts_as_success(self, store, fast_timings):
        transport = MockTransport()
        machine, states = make_machine(transport, store, fast_timings)

        assert machine.connect(ADDRESS, "123456")
        assert states == [ConnectionState.CONNECTING]

        await settle()
        assert machine.state == ConnectionState.AUTHENTICATING
        assert machine.awaiting_auth_response
        assert transport.notifications_enabled
        assert transport.writes == [b"123456"]

        await asyncio.sleep(fast_timings.auth_timeout * 2)
        assert states == [
            ConnectionState.CONNECTING,
            ConnectionState.AUTHENTICATING,
            ConnectionState.CONNECTED,
        ]
        assert not machine.awaiting_auth_response
        assert machine.error_message is None

    @pytest.mark.asyncio
    async def test_rssi_sampled_after_discovery(self, store, fast_timings):
        transport = MockTransport(rssi=-71)
        machine, _ = make_machine(transport, store, fast_timings)
        samples = []
        machine.on_rssi = samples.append

        machine.connect(ADDRESS, "123456")
        await settle()

        assert machine.rssi == -71
        assert samples == [-71]

    @pytest.mark.asyncio
    async def test_link_lost_while_awaiting_auth_is_rejection(self, store, fast_timings):
        transport = MockTransport()
        machine, states = make_machine(transport, store, fast_timings)
        rejected = []
        machine.on_authentication_rejected = rejected.append

        machine.connect(ADDRESS, "654321")
        await settle()
        assert machine.awaiting_auth_response

        transport.simulate_link_lost()
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED
        assert "authentication" in machine.error_message.lower()
        assert machine.error_message == MSG_AUTH_REJECTED
        assert rejected == [ADDRESS]
        assert isinstance(machine.last_error, AuthenticationRejected)
        assert ConnectionState.CONNECTED not in states

        # The auth timeout of the dead attempt must not resurrect the session
        await asyncio.sleep(fast_timings.auth_timeout * 2)
        assert machine.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connection_timeout(self, store, fast_timings):
        transport = MockTransport(auto_link=False)
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "123456")
        await asyncio.sleep(fast_timings.connection_timeout + 0.1)

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.error_message == MSG_CONNECTION_TIMEOUT
        assert isinstance(machine.last_error, TimeoutError)
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_link_failure(self, store, fast_timings):
        transport = MockTransport(auto_link=False)
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "123456")
        transport.simulate_link_failed("refused")
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.error_message == "Connection failed: refused"
        assert isinstance(machine.last_error, TransportError)

    @pytest.mark.asyncio
    async def test_open_error(self, store, fast_timings):
        transport = MockTransport(open_error="adapter busy")
        machine, states = make_machine(transport, store, fast_timings)

        assert machine.connect(ADDRESS, "123456")

        assert machine.state == ConnectionState.DISCONNECTED
        assert states == [ConnectionState.CONNECTING, ConnectionState.DISCONNECTED]
        assert machine.error_message == "Connection failed: adapter busy"
        assert isinstance(machine.last_error, TransportError)

        # The connection timeout of the failed attempt must stay silent
        await asyncio.sleep(fast_timings.connection_timeout + 0.1)
        assert states[-1] == ConnectionState.DISCONNECTED
        assert machine.error_message == "Connection failed: adapter busy"

    @pytest.mark.asyncio
    async def test_discovery_failure(self, store, fast_timings):
        transport = MockTransport(discovery_ok=False)
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "123456")
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.error_message.startswith("Service discovery failed")
        assert transport.writes == []

    @pytest.mark.asyncio
    async def test_auth_frame_send_failure(self, store, fast_timings):
        transport = MockTransport(accept_writes=False)
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "123456")
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.error_message == MSG_AUTH_SEND_FAILED

    @pytest.mark.asyncio
    async def test_invalid_password_is_rejected_locally(self, store, fast_timings):
        transport = MockTransport()
        machine, states = make_machine(transport, store, fast_timings)

        assert not machine.connect(ADDRESS, "12345")
        assert "6 characters" in machine.error_message
        assert isinstance(machine.last_error, ValidationError)
        assert transport.opened == []
        assert states == []

    @pytest.mark.asyncio
    async def test_stored_then_default_password(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS)
        await settle()
        assert transport.writes[-1] == b"123456"

        store.set(ADDRESS, "abcdef")
        machine.connect(ADDRESS)
        await settle()
        assert transport.writes[-1] == b"abcdef"

    @pytest.mark.asyncio
    async def test_password_remembered_only_after_success(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "654321", remember=True)
        await settle()
        assert store.get(ADDRESS) is None

        await asyncio.sleep(fast_timings.auth_timeout * 2)
        assert machine.state == ConnectionState.CONNECTED
        assert store.get(ADDRESS) == "654321"
        assert store.get_last_connected_device() == ADDRESS

    @pytest.mark.asyncio
    async def test_new_connect_tears_down_previous_session(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        machine.connect("11:22:33:44:55:66", "123456")
        assert transport.close_count == 1
        assert machine.address == "11:22:33:44:55:66"
        assert machine.state == ConnectionState.CONNECTING


class TestStatusFrames:
    """Inbound status and key frames."""

    @pytest.mark.asyncio
    async def test_link_up_ends_authentication_wait(self, store):
        timings = SessionTimings(auth_timeout=1.0, link_settle=0.0, discovery_settle=0.0)
        transport = MockTransport()
        machine, states = make_machine(transport, store, timings)

        machine.connect(ADDRESS, "123456", remember=True)
        await settle()
        assert machine.state == ConnectionState.AUTHENTICATING

        transport.simulate_data(bytes([0xFF, 0x00, 0x0A]))
        await settle()

        assert states[-1] == ConnectionState.CONNECTED
        assert not machine.awaiting_auth_response
        assert store.get(ADDRESS) == "123456"

        machine.disconnect()

    @pytest.mark.asyncio
    async def test_link_down_disconnects(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        transport.simulate_data(bytes([0xFF, 0x00, 0x0B]))
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED
        assert not transport.is_open

    @pytest.mark.asyncio
    async def test_credential_messages(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        transport.simulate_data(bytes([0xFF, 0xFF, 0x0D]))
        await settle()
        assert machine.state == ConnectionState.CONNECTED
        assert machine.error_message == MSG_PASSWORD_INCORRECT

        transport.simulate_data(bytes([0xFF, 0xFF, 0x0C]))
        await settle()
        assert machine.error_message == MSG_PASSWORD_CORRECT

    @pytest.mark.asyncio
    async def test_key_report(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        reports = []
        machine.on_keys_reported = reports.append
        await connect_and_authenticate(machine, fast_timings)

        transport.simulate_data(bytes([0xFF, 0x01, 0x03]))
        await settle()

        assert machine.reported_keys == {KeyId.K1, KeyId.K2, KeyId.K9}
        assert reports == [frozenset({KeyId.K1, KeyId.K2, KeyId.K9})]

    @pytest.mark.asyncio
    async def test_garbage_is_ignored(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        transport.simulate_data(b"\x00\x01")
        transport.simulate_data(b"\xfe\x00\x0b")
        await settle()

        assert machine.state == ConnectionState.CONNECTED
        assert machine.error_message is None


class TestExplicitAckPolicy:
    """Replacing the timeout-as-success inference."""

    @pytest.mark.asyncio
    async def test_accepted_frame_connects_immediately(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings, ExplicitAckPolicy())

        machine.connect(ADDRESS, "123456")
        await settle()
        transport.simulate_data(bytes([0xFF, 0xFF, 0x0C]))
        await settle()

        assert machine.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_silence_is_rejection(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings, ExplicitAckPolicy())

        machine.connect(ADDRESS, "123456")
        await settle()
        await asyncio.sleep(fast_timings.auth_timeout * 2)

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.error_message == MSG_AUTH_REJECTED

    @pytest.mark.asyncio
    async def test_rejected_frame(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings, ExplicitAckPolicy())

        machine.connect(ADDRESS, "123456")
        await settle()
        transport.simulate_data(bytes([0xFF, 0xFF, 0x0D]))
        await settle()

        assert machine.state == ConnectionState.DISCONNECTED


class TestDisconnectAndReconnect:

    @pytest.mark.asyncio
    async def test_disconnect_cancels_pending_timers(self, store, fast_timings):
        transport = MockTransport()
        machine, states = make_machine(transport, store, fast_timings)

        machine.connect(ADDRESS, "123456")
        await settle()
        assert machine.state == ConnectionState.AUTHENTICATING

        machine.disconnect()
        await asyncio.sleep(fast_timings.auth_timeout * 2)

        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.address is None
        assert states[-1] == ConnectionState.DISCONNECTED
        assert ConnectionState.CONNECTED not in states

    @pytest.mark.asyncio
    async def test_events_from_previous_link_are_dropped(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        # Queued by the old link, delivered after the new connect
        transport.simulate_link_lost()
        transport.simulate_data(bytes([0xFF, 0x00, 0x01]))
        assert machine.connect(ADDRESS, "654321")
        await settle()

        assert machine.state == ConnectionState.AUTHENTICATING
        assert machine.reported_keys == frozenset()
        assert transport.writes[-1] == b"654321"

        await asyncio.sleep(fast_timings.auth_timeout * 2)
        assert machine.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_retry_with_new_password(self, store, fast_timings):
        transport = MockTransport()
        machine, states = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        assert machine.reconnect("abcdef", delay=0.01)
        assert machine.state == ConnectionState.RECONNECTING
        assert machine.reconnect_attempts == 1

        await asyncio.sleep(0.05)
        assert transport.writes[-1] == b"abcdef"

        await asyncio.sleep(fast_timings.auth_timeout * 2)
        assert machine.state == ConnectionState.CONNECTED
        assert machine.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_reconnect_attempts_are_bounded(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        assert machine.reconnect(delay=1.0)
        assert machine.reconnect(delay=1.0)
        assert machine.reconnect_attempts == fast_timings.max_reconnect_attempts

        assert not machine.reconnect(delay=1.0)
        assert machine.state == ConnectionState.DISCONNECTED
        assert machine.reconnect_attempts == 0

    @pytest.mark.asyncio
    async def test_reconnect_without_target(self, store, fast_timings):
        machine, _ = make_machine(MockTransport(), store, fast_timings)
        assert not machine.reconnect("123456")
        assert machine.state == ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_spontaneous_link_loss_does_not_reconnect(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        await connect_and_authenticate(machine, fast_timings)

        transport.simulate_link_lost()
        await asyncio.sleep(fast_timings.reconnect_delay * 5)

        assert machine.state == ConnectionState.DISCONNECTED
        assert transport.opened == [ADDRESS]


class TestChangePassword:

    @pytest.mark.asyncio
    async def test_change_purges_stored_password(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        changed = []
        machine.on_password_changed = changed.append
        store.set(ADDRESS, "123456")
        await connect_and_authenticate(machine, fast_timings)

        assert machine.change_password_with_verification("123456", "654321")

        assert transport.writes[-1] == bytes([0xAA, 0x2D, 0xD4]) + b"654321"
        assert store.get(ADDRESS) is None
        assert machine.error_message == MSG_PASSWORD_CHANGED
        assert machine.last_error is None
        assert changed == [ADDRESS]
        assert machine.state == ConnectionState.CONNECTED

    @pytest.mark.asyncio
    async def test_current_password_mismatch(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        store.set(ADDRESS, "123456")
        await connect_and_authenticate(machine, fast_timings)
        sent = list(transport.writes)

        assert not machine.change_password_with_verification("111111", "654321")

        assert transport.writes == sent
        assert machine.error_message == MSG_CURRENT_PASSWORD_WRONG
        assert isinstance(machine.last_error, ValidationError)
        assert store.get(ADDRESS) == "123456"

    @pytest.mark.asyncio
    async def test_requires_connection(self, store, fast_timings):
        machine, _ = make_machine(MockTransport(), store, fast_timings)

        assert not machine.change_password_with_verification("123456", "654321")
        assert machine.error_message == MSG_NOT_CONNECTED
        assert isinstance(machine.last_error, NotConnectedError)

    @pytest.mark.asyncio
    async def test_new_password_length(self, store, fast_timings):
        transport = MockTransport()
        machine, _ = make_machine(transport, store, fast_timings)
        store.set(ADDRESS, "123456")
        await connect_and_authenticate(machine, fast_timings)
        sent = list(transport.writes)

        assert not machine.change_password_with_verification("123456", "1234567")
        assert transport.writes == sent
        assert "6 characters" in machine.error_message
