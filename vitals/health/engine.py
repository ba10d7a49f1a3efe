"""Health check engine — runs registered probes and aggregates a HealthReport.

Each query runs the selected probes concurrently, one asyncio task per probe,
bounded by a semaphore. Each check runs in its own task; plain callables run
on their own daemon thread so a hung check can be abandoned without holding
a concurrency slot. Coroutine checks are cancelled on timeout. A probe that
raises or times out becomes an Unhealthy entry, never an exception.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from collections.abc import Iterable
from typing import Any

from .models import CheckOutcome, HealthReport, ProbeResult, ProbeStatus
from .registry import Check, ProbeRegistration, ProbeRegistry

logger = logging.getLogger(__name__)

TIMED_OUT = "timed out"
DEADLINE_EXCEEDED = "deadline exceeded"

DEFAULT_MAX_CONCURRENCY = 8


def _coerce(value: Any) -> CheckOutcome:
    if isinstance(value, CheckOutcome):
        return value
    if isinstance(value, ProbeStatus):
        return CheckOutcome(value)
    raise TypeError(
        f"check returned {type(value).__name__}, expected CheckOutcome or ProbeStatus"
    )


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class HealthCheckService:
    """Runs probes from a ProbeRegistry and combines them into a report."""

    def __init__(
        self,
        registry: ProbeRegistry,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        deadline: float | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if deadline is not None and deadline <= 0:
            raise ValueError("deadline must be positive")
        self.registry = registry
        self.max_concurrency = max_concurrency
        self.deadline = deadline

    # ── Query interface ──────────────────────────────────────────────────────

    async def check_health(self, tags: Iterable[str] | None = None) -> HealthReport:
        """Run probes matching ``tags`` (all when empty) and aggregate the results."""
        t0 = time.perf_counter()
        selected = self.registry.select(tags)
        results: list[ProbeResult | None] = [None] * len(selected)
        started: list[float | None] = [None] * len(selected)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run(index: int, probe: ProbeRegistration) -> None:
            async with semaphore:
                started[index] = time.perf_counter()
                results[index] = await self._run_probe(probe, started[index])

        tasks = [
            asyncio.create_task(run(i, probe), name=f"probe-{probe.name}")
            for i, probe in enumerate(selected)
        ]
        try:
            if tasks:
                _, pending = await asyncio.wait(tasks, timeout=self.deadline)
                if pending:
                    logger.warning(
                        "Health query deadline (%.1fs) reached with %d probes in flight",
                        self.deadline, len(pending),
                    )
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)

        now = time.perf_counter()
        entries = []
        for i, probe in enumerate(selected):
            result = results[i]
            if result is None:
                began = started[i]
                result = ProbeResult(
                    name=probe.name,
                    status=ProbeStatus.UNHEALTHY,
                    duration=now - began if began is not None else 0.0,
                    description=DEADLINE_EXCEEDED,
                    tags=probe.tags,
                )
            entries.append(result)

        report = HealthReport.from_entries(entries, total_duration=time.perf_counter() - t0)
        logger.debug(
            "Health query: %s across %d probes (%.1fms)",
            report.status.value, len(entries), report.total_duration * 1000,
        )
        return report

    def run_health_check(self, tags: Iterable[str] | None = None) -> HealthReport:
        """Blocking variant of check_health for callers without an event loop.

        Raises RuntimeError when called from a running event loop; coroutines
        should await ``check_health`` instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.check_health(tags))
        raise RuntimeError(
            "run_health_check cannot be called from a running event loop; "
            "await check_health instead"
        )

    # ── Probe execution ──────────────────────────────────────────────────────

    async def _run_probe(self, probe: ProbeRegistration, t0: float) -> ProbeResult:
        abandoned = False

        async def guarded() -> tuple[CheckOutcome | None, BaseException | None]:
            try:
                return _coerce(await self._invoke(probe)), None
            except asyncio.CancelledError as e:
                if abandoned:
                    raise
                # raised by the check itself, not by the engine
                return None, e
            except BaseException as e:
                return None, e

        task = asyncio.create_task(guarded(), name=f"check-{probe.name}")
        try:
            done, _ = await asyncio.wait({task}, timeout=probe.timeout)
        except asyncio.CancelledError:
            abandoned = True
            task.cancel()
            raise

        if not done:
            abandoned = True
            task.cancel()
            task.add_done_callback(_discard)
            logger.warning("Probe '%s' timed out after %.1fs", probe.name, probe.timeout)
            return ProbeResult(
                name=probe.name,
                status=ProbeStatus.UNHEALTHY,
                duration=time.perf_counter() - t0,
                description=TIMED_OUT,
                tags=probe.tags,
            )

        duration = time.perf_counter() - t0
        outcome, error = task.result()

        if error is not None:
            logger.warning("Probe '%s' failed: %s", probe.name, _describe(error), exc_info=error)
            return ProbeResult(
                name=probe.name,
                status=ProbeStatus.UNHEALTHY,
                duration=duration,
                description=_describe(error),
                tags=probe.tags,
            )

        return ProbeResult(
            name=probe.name,
            status=outcome.status,
            duration=duration,
            description=outcome.description,
            data=outcome.data,
            tags=probe.tags,
        )

    async def _invoke(self, probe: ProbeRegistration) -> Any:
        check = probe.check
        if inspect.iscoroutinefunction(check):
            return await check()
        result, error = await _in_thread(check, probe.name)
        if error is not None:
            raise error
        # callable objects with an async __call__ hand back a coroutine
        if inspect.isawaitable(result):
            result = await result
        return result


def _discard(task: asyncio.Task[Any]) -> None:
    """Consume the outcome of an abandoned check so it is never reported."""
    if not task.cancelled():
        task.exception()


def _in_thread(check: Check, name: str) -> asyncio.Future[tuple[Any, BaseException | None]]:
    """Run a sync check on its own daemon thread.

    A check that outlives its timeout keeps only its own thread; it never
    holds a slot that later probes or queries need.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[tuple[Any, BaseException | None]] = loop.create_future()

    def resolve(outcome: tuple[Any, BaseException | None]) -> None:
        if not future.done():
            future.set_result(outcome)

    def target() -> None:
        try:
            outcome = (check(), None)
        except BaseException as e:
            outcome = (None, e)
        try:
            loop.call_soon_threadsafe(resolve, outcome)
        except RuntimeError:
            pass  # loop closed: the query already finished without us

    threading.Thread(target=target, name=f"probe-{name}", daemon=True).start()
    return future
