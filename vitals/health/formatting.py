"""Report formatting — JSON body, CLI table and transport status mapping."""

from __future__ import annotations

import base64
import math
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .models import HealthReport, ProbeResult, ProbeStatus

HTTP_OK = 200
HTTP_SERVICE_UNAVAILABLE = 503

_STATUS_STYLE = {
    ProbeStatus.HEALTHY: "green",
    ProbeStatus.DEGRADED: "yellow",
    ProbeStatus.UNHEALTHY: "bold red",
}


def format_duration(seconds: float) -> str:
    """Render seconds as ``HH:MM:SS.fffffff`` (100ns ticks)."""
    ticks = max(0, round(seconds * 10_000_000))
    whole, frac = divmod(ticks, 10_000_000)
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}.{frac:07d}"


def to_wire(value: Any) -> Any:
    """Map a probe data value onto a JSON-compatible value."""
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Enum):
        return to_wire(value.value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return format_duration(value.total_seconds())
    if isinstance(value, (bytes, bytearray)):
        return base64.b64encode(value).decode("ascii")
    if isinstance(value, Mapping):
        return {str(k): to_wire(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((to_wire(v) for v in value), key=repr)
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return str(value)


def entry_to_dict(entry: ProbeResult) -> dict[str, Any]:
    return {
        "name": entry.name,
        "status": entry.status.value,
        "duration": format_duration(entry.duration),
        "description": entry.description,
        "data": to_wire(entry.data),
        "tags": sorted(entry.tags),
    }


def report_to_dict(report: HealthReport) -> dict[str, Any]:
    """Serialize a report for the HTTP body / ``--json`` output."""
    return {
        "status": report.status.value,
        "totalDuration": format_duration(report.total_duration),
        "entries": [entry_to_dict(e) for e in report.entries],
    }


def http_status_for(report: HealthReport) -> int:
    """200 when the overall status is Healthy, 503 otherwise."""
    return HTTP_OK if report.is_healthy else HTTP_SERVICE_UNAVAILABLE


def render_report(report: HealthReport, console: Console | None = None) -> None:
    """Print a report as a rich table."""
    console = console or Console()
    table = Table(
        title=f"Overall: [{_STATUS_STYLE[report.status]}]{report.status.value}[/] "
        f"({report.total_duration * 1000:.1f}ms)",
    )
    table.add_column("Probe", style="bold")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Description")
    table.add_column("Data", style="dim")

    for e in report.entries:
        data = ", ".join(f"{k}={to_wire(v)}" for k, v in e.data.items())
        table.add_row(
            escape(e.name),
            f"[{_STATUS_STYLE[e.status]}]{e.status.value}[/]",
            f"{e.duration * 1000:.1f}ms",
            escape(e.description or ""),
            escape(data),
        )

    if not report.entries:
        console.print("[dim]No probes registered[/dim]")
    console.print(table)
