"""Probe registry — named checks registered at startup, read-only afterwards.

The composition root (CLI or API lifespan) builds one registry, fills it,
freezes it and hands it to the HealthCheckService.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import Union

from .errors import ConfigurationError, DuplicateProbeError
from .models import CheckOutcome, ProbeStatus

logger = logging.getLogger(__name__)

CheckReturn = Union[CheckOutcome, ProbeStatus]
Check = Callable[[], Union[CheckReturn, Awaitable[CheckReturn]]]

DEFAULT_TIMEOUT = 10.0  # seconds


# ── Models ───────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ProbeRegistration:
    """A registered probe: its check, timeout and selection tags."""

    name: str
    check: Check
    timeout: float  # seconds
    tags: frozenset[str] = frozenset()

    def matches(self, tags: Iterable[str] | None) -> bool:
        """True when ``tags`` is empty or shares at least one tag with this probe."""
        if isinstance(tags, str):
            tags = (tags,)
        wanted = frozenset(tags or ())
        return not wanted or bool(self.tags & wanted)


# ── Registry ─────────────────────────────────────────────────────────────────


class ProbeRegistry:
    """Ordered, name-unique collection of probe registrations."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT) -> None:
        if default_timeout <= 0:
            raise ConfigurationError("Default probe timeout must be positive")
        self.default_timeout = default_timeout
        self._probes: dict[str, ProbeRegistration] = {}
        self._lock = threading.Lock()
        self._frozen = False

    def register(
        self,
        name: str,
        check: Check,
        timeout: float | None = None,
        tags: Iterable[str] = (),
    ) -> ProbeRegistration:
        """Add a probe. Raises DuplicateProbeError if ``name`` is taken."""
        if not name or not name.strip():
            raise ConfigurationError("Probe name is required")
        if not callable(check):
            raise ConfigurationError(f"Probe '{name}': check must be callable")
        if timeout is None:
            timeout = self.default_timeout
        if timeout <= 0:
            raise ConfigurationError(f"Probe '{name}': timeout must be positive, got {timeout}")
        if isinstance(tags, str):
            tags = (tags,)

        registration = ProbeRegistration(
            name=name, check=check, timeout=float(timeout), tags=frozenset(tags),
        )
        with self._lock:
            if self._frozen:
                raise ConfigurationError(
                    f"Cannot register probe '{name}': registry is frozen"
                )
            if name in self._probes:
                raise DuplicateProbeError(name)
            self._probes[name] = registration

        logger.debug("Registered probe '%s' (timeout=%.1fs tags=%s)",
                     name, registration.timeout, sorted(registration.tags))
        return registration

    def freeze(self) -> None:
        """End the startup phase; further registration is a configuration error."""
        with self._lock:
            self._frozen = True
        logger.info("Probe registry frozen with %d probes", len(self._probes))

    @property
    def frozen(self) -> bool:
        return self._frozen

    def list_all(self) -> tuple[ProbeRegistration, ...]:
        """Snapshot of all registrations in registration order."""
        with self._lock:
            return tuple(self._probes.values())

    def select(self, tags: Iterable[str] | None = None) -> tuple[ProbeRegistration, ...]:
        """Registrations whose tags intersect ``tags`` (all when ``tags`` is empty)."""
        return tuple(p for p in self.list_all() if p.matches(tags))

    def get(self, name: str) -> ProbeRegistration | None:
        return self._probes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._probes

    def __len__(self) -> int:
        return len(self._probes)

    def __iter__(self) -> Iterator[ProbeRegistration]:
        return iter(self.list_all())
