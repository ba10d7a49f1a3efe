"""Probes file loader — parses probes.yaml into ProbeRegistry entries.

Example::

    probes:
      - name: api
        type: http
        url: http://localhost:8080/ping
        timeout_ms: 5000
        tags: [ready]
      - name: db
        type: tcp
        hostname: localhost
        port: 5432
        tags: [ready, live]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..health.errors import ConfigurationError
from ..health.registry import Check, ProbeRegistry
from .network import dns_probe, http_probe, tcp_probe, tls_probe

logger = logging.getLogger(__name__)


# ── Data models ──────────────────────────────────────────────────────────────


@dataclass
class ProbeDef:
    """Definition of a single probe from the probes file."""

    name: str
    type: str  # http | tcp | dns | tls
    url: str = ""
    hostname: str = ""
    port: int | None = None
    method: str = "GET"
    expected_status: int = 200
    degraded_ms: float = 3000
    verify: bool = True
    warn_days_before: int = 14  # for TLS probes
    timeout_ms: int | None = None
    tags: list[str] = field(default_factory=list)

    @property
    def timeout_s(self) -> float | None:
        return self.timeout_ms / 1000 if self.timeout_ms is not None else None


# ── Factories ────────────────────────────────────────────────────────────────


def _require(d: ProbeDef, attr: str) -> str:
    value = getattr(d, attr)
    if not value:
        raise ConfigurationError(f"Probe '{d.name}': '{attr}' is required for {d.type} probes")
    return value


def _build_http(d: ProbeDef, timeout_s: float) -> Check:
    return http_probe(
        _require(d, "url"), d.method, d.expected_status, d.degraded_ms, timeout_s, d.verify,
    )


def _build_tcp(d: ProbeDef, timeout_s: float) -> Check:
    if d.port is None:
        raise ConfigurationError(f"Probe '{d.name}': 'port' is required for tcp probes")
    return tcp_probe(_require(d, "hostname"), d.port, timeout_s)


def _build_dns(d: ProbeDef, timeout_s: float) -> Check:
    return dns_probe(_require(d, "hostname"))


def _build_tls(d: ProbeDef, timeout_s: float) -> Check:
    return tls_probe(_require(d, "hostname"), d.port or 443, d.warn_days_before, timeout_s)


PROBE_BUILDERS = {
    "http": _build_http,
    "tcp": _build_tcp,
    "dns": _build_dns,
    "tls": _build_tls,
}


def build_check(d: ProbeDef, timeout_s: float) -> Check:
    builder = PROBE_BUILDERS.get(d.type)
    if not builder:
        raise ConfigurationError(
            f"Probe '{d.name}': unknown probe type '{d.type}' "
            f"(expected one of {', '.join(PROBE_BUILDERS)})"
        )
    return builder(d, timeout_s)


# ── Loader ───────────────────────────────────────────────────────────────────


def load_probes(path: Path, registry: ProbeRegistry) -> int:
    """Register every probe declared in ``path``. Returns the number added.

    A missing file registers nothing. Anything malformed raises
    ConfigurationError, including duplicate names.
    """
    if not path.exists():
        logger.warning("Probes file not found: %s (no probes registered)", path)
        return 0

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: expected a mapping with a 'probes' list")

    entries = raw.get("probes") or []
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path}: 'probes' must be a list")

    for i, entry in enumerate(entries):
        d = parse_probe(entry, i)
        timeout_s = d.timeout_s if d.timeout_s is not None else registry.default_timeout
        registry.register(d.name, build_check(d, timeout_s), timeout=timeout_s, tags=d.tags)

    logger.info("Loaded %d probes from %s", len(entries), path)
    return len(entries)


# ── Parsers ──────────────────────────────────────────────────────────────────


def parse_probe(raw: Any, index: int = 0) -> ProbeDef:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Probe entry #{index} must be a mapping")
    if not raw.get("name"):
        raise ConfigurationError(f"Probe entry #{index} is missing 'name'")
    if not raw.get("type"):
        raise ConfigurationError(f"Probe '{raw['name']}' is missing 'type'")

    tags = raw.get("tags") or []
    if isinstance(tags, str):
        tags = [tags]

    try:
        return ProbeDef(
            name=str(raw["name"]),
            type=str(raw["type"]).lower(),
            url=raw.get("url", ""),
            hostname=raw.get("hostname", ""),
            port=int(raw["port"]) if raw.get("port") is not None else None,
            method=raw.get("method", "GET"),
            expected_status=int(raw.get("expected_status", 200)),
            degraded_ms=float(raw.get("degraded_ms", 3000)),
            verify=bool(raw.get("verify", True)),
            warn_days_before=int(raw.get("warn_days_before", 14)),
            timeout_ms=int(raw["timeout_ms"]) if raw.get("timeout_ms") is not None else None,
            tags=[str(t) for t in tags],
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Probe '{raw['name']}': {e}") from e
