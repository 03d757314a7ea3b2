"""Pytest configuration and shared fixtures."""

from typing import Dict, List, Optional, Union

import pytest
from fastapi.testclient import TestClient

from perfect_names.config import Settings
from perfect_names.models import NameResolution, NameSource

ADDRESS_A = "0x" + "a" * 40
ADDRESS_B = "0x" + "b" * 40
ADDRESS_C = "0x" + "c" * 40
ADDRESS_D = "0x1234567890abcdef1234567890abcdef12345678"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeProvider:
    """Provider returning canned names or raising canned errors."""

    def __init__(self, name: str, results: Optional[Dict[str, Union[str, Exception, None]]] = None):
        self.name = name
        self.results = results or {}
        self.calls: List[str] = []

    async def lookup(self, address: str) -> Optional[str]:
        self.calls.append(address)
        result = self.results.get(address)
        if isinstance(result, Exception):
            raise result
        return result


class RecordingSleep:
    """Async sleep replacement that records delays instead of waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        environment="test",
        debug=True,
        alchemy_api_key="test-alchemy-key",
        resolve_timeout=1.0,
        backoff_base_delay=0.01,
        backoff_max_delay=0.05,
    )


@pytest.fixture
def ens_provider():
    return FakeProvider("ens")


@pytest.fixture
def basename_provider():
    return FakeProvider("basename")


@pytest.fixture
def resolution_context(test_settings, ens_provider, basename_provider, clock, sleep):
    """Resolution context wired with fake providers and a fake clock."""
    from perfect_names.services.resolver import create_resolution_context

    return create_resolution_context(
        test_settings,
        providers=[ens_provider, basename_provider],
        clock=clock,
        sleep=sleep,
    )


@pytest.fixture
def test_client(test_settings, resolution_context):
    """FastAPI test client backed by fake providers."""
    from perfect_names.main import create_app

    app = create_app(test_settings, context=resolution_context)
    return TestClient(app)


@pytest.fixture
def ens_resolution():
    def make(address: str, name: str = "vitalik.eth", timestamp: float = 1_000_000.0):
        return NameResolution(address=address, name=name, source=NameSource.ENS, timestamp=timestamp)

    return make
