"""Health models — probe status, per-probe results and the aggregate report."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


def _freeze(data: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(data or {}))


class ProbeStatus(str, Enum):
    HEALTHY = "Healthy"
    DEGRADED = "Degraded"
    UNHEALTHY = "Unhealthy"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    ProbeStatus.HEALTHY: 0,
    ProbeStatus.DEGRADED: 1,
    ProbeStatus.UNHEALTHY: 2,
}


def worst_status(statuses: Iterable[ProbeStatus]) -> ProbeStatus:
    """Combine statuses by precedence: Unhealthy > Degraded > Healthy.

    An empty input is Healthy.
    """
    return max(statuses, key=lambda s: s.severity, default=ProbeStatus.HEALTHY)


@dataclass(frozen=True)
class CheckOutcome:
    """What a probe's check returns."""

    status: ProbeStatus
    description: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _freeze(self.data))

    @classmethod
    def healthy(cls, description: str | None = None, **data: Any) -> CheckOutcome:
        return cls(ProbeStatus.HEALTHY, description, data)

    @classmethod
    def degraded(cls, description: str | None = None, **data: Any) -> CheckOutcome:
        return cls(ProbeStatus.DEGRADED, description, data)

    @classmethod
    def unhealthy(cls, description: str | None = None, **data: Any) -> CheckOutcome:
        return cls(ProbeStatus.UNHEALTHY, description, data)


@dataclass(frozen=True)
class ProbeResult:
    """Result of a single probe within one health query."""

    name: str
    status: ProbeStatus
    duration: float  # seconds
    description: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "data", _freeze(self.data))


@dataclass(frozen=True)
class HealthReport:
    """Aggregated outcome of one health query.

    ``entries`` follow registration order, never completion order.
    """

    status: ProbeStatus
    total_duration: float  # seconds
    entries: tuple[ProbeResult, ...] = ()

    @classmethod
    def from_entries(cls, entries: Iterable[ProbeResult], total_duration: float) -> HealthReport:
        entries = tuple(entries)
        return cls(
            status=worst_status(e.status for e in entries),
            total_duration=total_duration,
            entries=entries,
        )

    @property
    def is_healthy(self) -> bool:
        return self.status == ProbeStatus.HEALTHY

    def get(self, name: str) -> ProbeResult | None:
        return next((e for e in self.entries if e.name == name), None)
