"""Tests for the Health Check Engine — isolation, timeouts, ordering, aggregation."""

from __future__ import annotations

import asyncio
import sys
import threading
import time

import pytest

from vitals.health.engine import DEADLINE_EXCEEDED, TIMED_OUT, HealthCheckService
from vitals.health.models import CheckOutcome, ProbeStatus
from vitals.health.registry import ProbeRegistry


def healthy() -> CheckOutcome:
    return CheckOutcome.healthy("ok")


def degraded() -> CheckOutcome:
    return CheckOutcome.degraded("slow")


def refused() -> CheckOutcome:
    raise ConnectionRefusedError("connection refused")


# ── Scenarios ────────────────────────────────────────────────────────────────


class TestScenarios:
    def test_empty_registry(self, service: HealthCheckService) -> None:
        report = service.run_health_check()
        assert report.status == ProbeStatus.HEALTHY
        assert report.entries == ()
        assert report.total_duration >= 0

    def test_db_healthy_cache_degraded(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        registry.register("db", healthy)
        registry.register("cache", degraded)

        report = service.run_health_check()
        assert report.status == ProbeStatus.DEGRADED
        assert [(e.name, e.status) for e in report.entries] == [
            ("db", ProbeStatus.HEALTHY),
            ("cache", ProbeStatus.DEGRADED),
        ]
        assert report.entries[1].description == "slow"

    def test_throwing_probe(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("db", refused)

        report = service.run_health_check()
        assert report.status == ProbeStatus.UNHEALTHY
        assert len(report.entries) == 1
        entry = report.entries[0]
        assert entry.name == "db"
        assert entry.status == ProbeStatus.UNHEALTHY
        assert entry.description == "connection refused"
        assert dict(entry.data) == {}


# ── Failure isolation ────────────────────────────────────────────────────────


class TestIsolation:
    def test_failure_does_not_affect_siblings(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        registry.register("a", healthy)
        registry.register("b", refused)
        registry.register("c", degraded)

        report = service.run_health_check()
        assert [e.status for e in report.entries] == [
            ProbeStatus.HEALTHY, ProbeStatus.UNHEALTHY, ProbeStatus.DEGRADED,
        ]
        assert report.status == ProbeStatus.UNHEALTHY

    def test_cancelled_error_from_check_is_a_failure(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        async def cancelled() -> CheckOutcome:
            raise asyncio.CancelledError("upstream cancelled")

        registry.register("upstream", cancelled)
        registry.register("db", healthy)

        report = service.run_health_check()
        assert report.entries[0].status == ProbeStatus.UNHEALTHY
        assert report.entries[0].description == "upstream cancelled"
        assert report.entries[1].status == ProbeStatus.HEALTHY

    def test_exit_and_interrupt_are_contained(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        def exits() -> CheckOutcome:
            sys.exit(3)

        async def interrupted() -> CheckOutcome:
            raise KeyboardInterrupt("stop")

        registry.register("exits", exits)
        registry.register("interrupted", interrupted)
        registry.register("db", healthy)

        report = service.run_health_check()
        assert [e.status for e in report.entries] == [
            ProbeStatus.UNHEALTHY, ProbeStatus.UNHEALTHY, ProbeStatus.HEALTHY,
        ]
        assert report.entries[0].description == "3"
        assert report.entries[1].description == "stop"

    def test_async_probe_failure(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        async def boom() -> CheckOutcome:
            await asyncio.sleep(0)
            raise ValueError("bad config")

        registry.register("boom", boom)
        entry = service.run_health_check().entries[0]
        assert entry.status == ProbeStatus.UNHEALTHY
        assert entry.description == "bad config"

    def test_empty_exception_message_uses_type_name(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        def boom() -> CheckOutcome:
            raise RuntimeError()

        registry.register("boom", boom)
        assert service.run_health_check().entries[0].description == "RuntimeError"

    def test_invalid_return_value(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("weird", lambda: "ok")
        entry = service.run_health_check().entries[0]
        assert entry.status == ProbeStatus.UNHEALTHY
        assert "expected CheckOutcome" in entry.description

    def test_bare_status_return(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("bare", lambda: ProbeStatus.DEGRADED)
        entry = service.run_health_check().entries[0]
        assert entry.status == ProbeStatus.DEGRADED
        assert entry.description is None

    def test_data_and_tags_carried(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("db", lambda: CheckOutcome.healthy("ok", pool=5), tags=["ready"])
        entry = service.run_health_check().entries[0]
        assert entry.data == {"pool": 5}
        assert entry.tags == frozenset({"ready"})


# ── Timeouts ─────────────────────────────────────────────────────────────────


class TestTimeouts:
    def test_async_probe_times_out(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        cancelled = []

        async def hang() -> CheckOutcome:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise
            return CheckOutcome.healthy()

        registry.register("hang", hang, timeout=0.1)
        registry.register("db", healthy)

        t0 = time.perf_counter()
        report = service.run_health_check()
        elapsed = time.perf_counter() - t0

        assert elapsed < 2.0
        assert report.entries[0].status == ProbeStatus.UNHEALTHY
        assert report.entries[0].description == TIMED_OUT
        assert report.entries[0].duration >= 0.09
        assert report.entries[1].status == ProbeStatus.HEALTHY
        assert cancelled == [True]

    def test_sync_probe_times_out(
        self,
        registry: ProbeRegistry,
        service: HealthCheckService,
        release: threading.Event,
    ) -> None:
        def hang() -> CheckOutcome:
            release.wait(10)
            return CheckOutcome.healthy()

        registry.register("hang", hang, timeout=0.1)

        t0 = time.perf_counter()
        report = service.run_health_check()
        assert time.perf_counter() - t0 < 2.0
        assert report.entries[0].description == TIMED_OUT
        assert report.status == ProbeStatus.UNHEALTHY

    def test_hung_sync_check_does_not_starve_siblings(
        self, registry: ProbeRegistry, release: threading.Event,
    ) -> None:
        def hang() -> CheckOutcome:
            release.wait(10)
            return CheckOutcome.healthy()

        registry.register("hang", hang, timeout=0.1)
        registry.register("db", healthy, timeout=0.5)
        service = HealthCheckService(registry, max_concurrency=1)

        for _ in range(2):
            t0 = time.perf_counter()
            report = service.run_health_check()
            assert time.perf_counter() - t0 < 2.0
            assert report.entries[0].description == TIMED_OUT
            assert report.entries[1].status == ProbeStatus.HEALTHY
            assert report.entries[1].description == "ok"

    def test_check_that_swallows_cancellation_still_times_out(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        async def stubborn() -> CheckOutcome:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                pass
            return CheckOutcome.healthy("too late")

        registry.register("stubborn", stubborn, timeout=0.1)
        entry = service.run_health_check().entries[0]
        assert entry.status == ProbeStatus.UNHEALTHY
        assert entry.description == TIMED_OUT

    def test_late_result_is_discarded(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        def slow() -> CheckOutcome:
            time.sleep(0.3)
            return CheckOutcome.healthy()

        registry.register("slow", slow, timeout=0.05)
        report = service.run_health_check()
        time.sleep(0.35)
        assert report.entries[0].status == ProbeStatus.UNHEALTHY
        assert report.entries[0].description == TIMED_OUT

    def test_query_deadline(self, registry: ProbeRegistry) -> None:
        async def hang() -> CheckOutcome:
            await asyncio.sleep(30)
            return CheckOutcome.healthy()

        registry.register("db", healthy)
        registry.register("hang", hang, timeout=20)
        service = HealthCheckService(registry, deadline=0.2)
        t0 = time.perf_counter()
        report = service.run_health_check()
        assert time.perf_counter() - t0 < 2.0

        assert report.entries[0].status == ProbeStatus.HEALTHY
        assert report.entries[1].status == ProbeStatus.UNHEALTHY
        assert report.entries[1].description == DEADLINE_EXCEEDED
        assert report.status == ProbeStatus.UNHEALTHY


# ── Concurrency & ordering ───────────────────────────────────────────────────


class TestConcurrency:
    def test_entries_follow_registration_order(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        def make(delay: float):
            async def check() -> CheckOutcome:
                await asyncio.sleep(delay)
                return CheckOutcome.healthy()
            return check

        # later registrations finish first
        for i, delay in enumerate([0.15, 0.1, 0.05, 0.0]):
            registry.register(f"p{i}", make(delay))

        report = service.run_health_check()
        assert [e.name for e in report.entries] == ["p0", "p1", "p2", "p3"]

    def test_runs_concurrently(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        async def nap() -> CheckOutcome:
            await asyncio.sleep(0.2)
            return CheckOutcome.healthy()

        for i in range(4):
            registry.register(f"p{i}", nap)

        report = service.run_health_check()
        # concurrent: roughly one nap, not four
        assert report.total_duration < 0.6
        assert report.total_duration >= max(e.duration for e in report.entries)

    def test_concurrency_limit(self, registry: ProbeRegistry) -> None:
        running = 0
        peak = 0

        async def tracked() -> CheckOutcome:
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.05)
            running -= 1
            return CheckOutcome.healthy()

        for i in range(6):
            registry.register(f"p{i}", tracked)

        report = HealthCheckService(registry, max_concurrency=2).run_health_check()

        assert peak == 2
        assert report.status == ProbeStatus.HEALTHY

    def test_shape_is_stable_across_calls(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        registry.register("db", healthy)
        registry.register("cache", degraded)
        registry.register("queue", lambda: ProbeStatus.HEALTHY)

        first = service.run_health_check()
        second = service.run_health_check()
        assert [e.name for e in first.entries] == [e.name for e in second.entries]
        assert [e.status for e in first.entries] == [e.status for e in second.entries]

    def test_tag_filter(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("db", healthy, tags=["ready"])
        registry.register("cache", degraded, tags=["cache"])

        report = service.run_health_check(["ready"])
        assert [e.name for e in report.entries] == ["db"]
        assert report.status == ProbeStatus.HEALTHY

    def test_single_string_tag(self, registry: ProbeRegistry, service: HealthCheckService) -> None:
        registry.register("db", healthy, tags="ready")
        registry.register("cache", degraded, tags="cache")

        report = service.run_health_check("ready")
        assert [e.name for e in report.entries] == ["db"]
        assert report.entries[0].tags == frozenset({"ready"})

    def test_check_health_inside_running_loop(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        registry.register("db", healthy)

        async def main():
            return await service.check_health()

        report = asyncio.run(main())
        assert report.entries[0].status == ProbeStatus.HEALTHY

    def test_blocking_call_inside_running_loop_is_rejected(
        self, registry: ProbeRegistry, service: HealthCheckService,
    ) -> None:
        registry.register("db", healthy)

        async def main():
            with pytest.raises(RuntimeError, match="await check_health"):
                service.run_health_check()

        asyncio.run(main())


class TestValidation:
    @pytest.mark.parametrize("kwargs", [{"max_concurrency": 0}, {"deadline": 0}, {"deadline": -1}])
    def test_invalid_settings(self, registry: ProbeRegistry, kwargs) -> None:
        with pytest.raises(ValueError):
            HealthCheckService(registry, **kwargs)
