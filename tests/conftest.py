"""Shared test fixtures."""

from __future__ import annotations

import socket
import threading
from collections.abc import Iterator
from unittest.mock import patch

import pytest

from vitals.health.engine import HealthCheckService
from vitals.health.registry import ProbeRegistry


@pytest.fixture
def registry() -> ProbeRegistry:
    return ProbeRegistry(default_timeout=2.0)


@pytest.fixture
def service(registry: ProbeRegistry) -> HealthCheckService:
    return HealthCheckService(registry, max_concurrency=4)


@pytest.fixture
def release() -> Iterator[threading.Event]:
    """Event that unblocks hung sync checks once the test is done."""
    event = threading.Event()
    yield event
    event.set()


def _resolve(host, port, *args, **kwargs):
    if host == "localhost":
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("127.0.0.1", 0))]
    raise socket.gaierror(-2, "Name or service not known")


@pytest.fixture
def fake_dns() -> Iterator[None]:
    """Resolve only ``localhost``, without touching the system resolver."""
    with patch("vitals.probes.network.socket.getaddrinfo", side_effect=_resolve):
        yield
