"""
pytest configuration for the ALLREMOTE tests.

Puts the integration directory on the path so the protocol library is
imported as the top-level `allremote` package, without Home Assistant.
"""

import os
import sys

tests_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(tests_dir)
integration_dir = os.path.join(project_root, "custom_components", "allremote_ble")

if integration_dir not in sys.path:
    sys.path.insert(0, integration_dir)

if tests_dir not in sys.path:
    sys.path.insert(0, tests_dir)

import pytest

from allremote.protocol.state_machine import SessionTimings
from allremote.storage.base import MemoryPasswordStore


@pytest.fixture
def store():
    return MemoryPasswordStore()


@pytest.fixture
def fast_timings():
    """Timings short enough to run scenarios in a few milliseconds."""
    return SessionTimings(
        connection_timeout=0.2,
        auth_timeout=0.05,
        link_settle=0.0,
        discovery_settle=0.0,
        reconnect_delay=0.01,
        max_reconnect_attempts=2,
    )
