"""Network probes — HTTP(S), TCP connect, DNS resolve, TLS cert expiry.

Each factory returns a zero-argument check. Connection errors are raised,
not caught: the engine turns them into Unhealthy entries.
"""

from __future__ import annotations

import socket
import ssl
import time
from datetime import datetime, timezone

import httpx

from ..health.models import CheckOutcome
from ..health.registry import Check


def http_probe(
    url: str,
    method: str = "GET",
    expected_status: int = 200,
    degraded_ms: float = 3000,
    timeout_s: float = 10.0,
    verify: bool = True,
) -> Check:
    """HTTP(S) check — status code plus a latency budget."""

    async def check() -> CheckOutcome:
        t0 = time.perf_counter()
        async with httpx.AsyncClient(
            timeout=timeout_s, follow_redirects=True, verify=verify,
        ) as client:
            resp = await client.request(method, url)
        latency = round((time.perf_counter() - t0) * 1000, 1)

        data = {"status_code": resp.status_code, "latency_ms": latency}
        if resp.status_code != expected_status:
            return CheckOutcome.unhealthy(
                f"Expected {expected_status}, got {resp.status_code}", **data,
            )
        if latency > degraded_ms:
            return CheckOutcome.degraded(
                f"{resp.status_code} OK but slow ({latency}ms > {degraded_ms}ms)", **data,
            )
        return CheckOutcome.healthy(f"{resp.status_code} OK", **data)

    return check


def tcp_probe(hostname: str, port: int, timeout_s: float = 5.0) -> Check:
    """Raw TCP port connectivity check."""

    def check() -> CheckOutcome:
        with socket.create_connection((hostname, port), timeout=timeout_s):
            pass
        return CheckOutcome.healthy(f"Port {port} open")

    return check


def dns_probe(hostname: str) -> Check:
    """DNS resolution check."""

    def check() -> CheckOutcome:
        addrs = socket.getaddrinfo(hostname, None)
        ips = sorted({a[4][0] for a in addrs})
        return CheckOutcome.healthy(f"Resolved to {', '.join(ips[:3])}", ips=ips)

    return check


def tls_probe(
    hostname: str,
    port: int = 443,
    warn_days_before: int = 14,
    timeout_s: float = 10.0,
) -> Check:
    """TLS certificate expiry check."""

    def check() -> CheckOutcome:
        ctx = ssl.create_default_context()
        with socket.create_connection((hostname, port), timeout=timeout_s) as sock:
            with ctx.wrap_socket(sock, server_hostname=hostname) as ssock:
                cert = ssock.getpeercert()

        if not cert:
            return CheckOutcome.unhealthy("No certificate returned")

        expiry = datetime.strptime(
            cert["notAfter"], "%b %d %H:%M:%S %Y %Z",
        ).replace(tzinfo=timezone.utc)
        return classify_expiry(expiry, warn_days_before)

    return check


def classify_expiry(
    expiry: datetime,
    warn_days_before: int,
    now: datetime | None = None,
) -> CheckOutcome:
    now = now or datetime.now(timezone.utc)
    days_left = (expiry - now).days
    data = {"days_left": days_left, "expiry": expiry}

    if days_left < 0:
        return CheckOutcome.unhealthy(f"Certificate EXPIRED {-days_left} days ago", **data)
    if days_left < warn_days_before:
        return CheckOutcome.degraded(
            f"Certificate expires in {days_left} days (warn < {warn_days_before})", **data,
        )
    return CheckOutcome.healthy(f"Certificate valid, expires in {days_left} days", **data)
