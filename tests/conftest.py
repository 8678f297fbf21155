"""Pytest configuration and fixtures for remote event core tests."""

from __future__ import annotations

import sys
from pathlib import Path

# Add parent directory to Python path so we can import remote_events
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from remote_events.application import DeviceSession
from remote_events.config_loader import EventCoreSettings
from tests.doubles import FakeClock, FakeEventTransport
from tests.doubles.addresses import SWITCH, TEMPERATURE


@pytest.fixture
def settings() -> EventCoreSettings:
    """Settings with a short timeout and small log chunks."""
    return EventCoreSettings(command_timeout=0.5, log_chunk_size=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeEventTransport:
    """Connected fake transport."""
    return FakeEventTransport(connected=True)


@pytest.fixture
def session(transport, settings, clock) -> DeviceSession:
    """Live session on the fake transport."""
    return DeviceSession(transport, settings=settings, clock=clock)


@pytest.fixture
def switch(session):
    """Root switch event."""
    return session.root_event(SWITCH, "switch")


@pytest.fixture
def temperature(session):
    """Temperature data register."""
    return session.data_register(TEMPERATURE, "temperature")
