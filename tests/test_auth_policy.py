"""
Tests for the authentication outcome policies.
"""

from allremote.protocol.auth import AuthenticationPolicy, AuthVerdict, ExplicitAckPolicy
from allremote.protocol.keys import StatusCode


def test_default_policy_trusts_silence():
    policy = AuthenticationPolicy()
    assert policy.on_timeout() == AuthVerdict.ACCEPTED
    assert policy.on_link_lost() == AuthVerdict.REJECTED
    assert policy.on_status(StatusCode.LINK_UP) == AuthVerdict.ACCEPTED
    for status in (
        StatusCode.LINK_DOWN,
        StatusCode.CREDENTIAL_ACCEPTED,
        StatusCode.CREDENTIAL_REJECTED,
    ):
        assert policy.on_status(status) == AuthVerdict.PENDING


def test_explicit_ack_policy():
    policy = ExplicitAckPolicy()
    assert policy.on_timeout() == AuthVerdict.REJECTED
    assert policy.on_link_lost() == AuthVerdict.REJECTED
    assert policy.on_status(StatusCode.CREDENTIAL_ACCEPTED) == AuthVerdict.ACCEPTED
    assert policy.on_status(StatusCode.LINK_UP) == AuthVerdict.ACCEPTED
    assert policy.on_status(StatusCode.CREDENTIAL_REJECTED) == AuthVerdict.REJECTED
    assert policy.on_status(StatusCode.LINK_DOWN) == AuthVerdict.PENDING
