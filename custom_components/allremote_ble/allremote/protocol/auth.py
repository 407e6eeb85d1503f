"""Authentication outcome policies.

The module answers a password frame by dropping the link when the password
is wrong and by staying silent when it is right. Every inference about the
outcome of an authentication attempt goes through one of these classes, so
a module that starts sending explicit acknowledgments only needs a
different policy.
"""

from enum import Enum, auto
from typing import Optional

from .keys import StatusCode


class AuthVerdict(Enum):
    """Outcome of an authentication attempt."""
    PENDING = auto()
    ACCEPTED = auto()
    REJECTED = auto()


class AuthenticationPolicy:
    """
    Timeout-as-success policy.

    Surviving the authentication window without being disconnected counts
    as acceptance. A link-up status frame ends the wait early. A module that
    delays its rejection past the window is misclassified as accepted.
    """

    def on_timeout(self) -> AuthVerdict:
        return AuthVerdict.ACCEPTED

    def on_link_lost(self) -> AuthVerdict:
        return AuthVerdict.REJECTED

    def on_status(self, status: StatusCode) -> AuthVerdict:
        if status == StatusCode.LINK_UP:
            return AuthVerdict.ACCEPTED
        return AuthVerdict.PENDING


class ExplicitAckPolicy(AuthenticationPolicy):
    """Trust only in-band acknowledgments; silence means rejection."""

    _VERDICTS = {
        StatusCode.CREDENTIAL_ACCEPTED: AuthVerdict.ACCEPTED,
        StatusCode.LINK_UP: AuthVerdict.ACCEPTED,
        StatusCode.CREDENTIAL_REJECTED: AuthVerdict.REJECTED,
    }

    def on_timeout(self) -> AuthVerdict:
        return AuthVerdict.REJECTED

    def on_status(self, status: StatusCode) -> AuthVerdict:
        verdict: Optional[AuthVerdict] = self._VERDICTS.get(status)
        return verdict or AuthVerdict.PENDING
