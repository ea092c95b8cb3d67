"""Health check scheduler: decides which resources are due each tick.

One asyncio task drives the loop. Each tick fetches the enabled resources,
refreshes the store's resource snapshot, and runs a SCHEDULED check for
every resource whose interval (plus fresh random jitter) has elapsed since
its last check. Checks run concurrently in a thread pool; a failing check
is logged and never stops the loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

from resource_health.catalog.provider import ResourceProvider
from resource_health.domain.models import ExecutionType, ResourceDescriptor, ScheduleType
from resource_health.health.service import HealthService
from resource_health.stores.base import HealthStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 600
DEFAULT_LOOP_SECONDS = 30.0
DEFAULT_JITTER_MAX_SECONDS = 30.0

_DURATION = re.compile(r"^PT(?:(\d+)M)?(?:(\d+)S)?$", re.IGNORECASE)


def parse_interval_seconds(value: str | None) -> int:
    """ISO-8601 minutes/seconds duration (``PT10M``, ``PT30S``, ``PT1M30S``).

    Anything else, including a zero duration, yields 600 seconds.
    """
    match = _DURATION.match((value or "").strip())
    if not match:
        return DEFAULT_INTERVAL_SECONDS
    minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return minutes * 60 + seconds or DEFAULT_INTERVAL_SECONDS


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class Scheduler:
    """STOPPED ⇄ RUNNING control loop around ``HealthService.run_check``."""

    def __init__(
        self,
        provider: ResourceProvider,
        service: HealthService,
        store: HealthStore,
        loop_seconds: float = DEFAULT_LOOP_SECONDS,
        jitter_max_seconds: float = DEFAULT_JITTER_MAX_SECONDS,
        max_workers: int = 4,
        clock: Callable[[], datetime] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.provider = provider
        self.service = service
        self.store = store
        self.loop_seconds = loop_seconds
        self.jitter_max_seconds = jitter_max_seconds
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._rng = rng or random.Random()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="health-check")
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        """Schedule the recurring tick. No-op when already running."""
        if self._task is not None:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run_loop(self._stop_event), name="health-scheduler")
        logger.info(
            "Health scheduler started (loop=%ss, jitter<=%ss)",
            self.loop_seconds, self.jitter_max_seconds,
        )

    async def stop(self) -> None:
        """Stop scheduling new ticks; a tick already in progress completes."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if self._stop_event is not None:
            self._stop_event.set()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Health scheduler stopped")

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)

    async def _run_loop(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.loop_seconds)
            except asyncio.TimeoutError:
                pass

    # ── Tick ──────────────────────────────────────────────────────────────

    def _jitter(self) -> float:
        if self.jitter_max_seconds <= 0:
            return 0.0
        return self._rng.uniform(0, self.jitter_max_seconds)

    def is_due(self, resource: ResourceDescriptor, now: datetime | None = None) -> bool:
        """Whether ``resource`` should be checked now. Jitter is redrawn per call."""
        policy = resource.policy
        if policy is None or policy.schedule.type != ScheduleType.INTERVAL:
            return False

        status = self.store.get_status(resource.id)
        last_check = _parse_timestamp(status.last_check_at) if status else None
        if last_check is None:
            return True

        elapsed = ((now or self._clock()) - last_check).total_seconds()
        return elapsed >= parse_interval_seconds(policy.schedule.value) + self._jitter()

    async def tick(self) -> list[str]:
        """Run one scheduling pass. Returns the ids of resources checked."""
        loop = asyncio.get_running_loop()
        resources = await loop.run_in_executor(self._executor, self.provider.list_resources)
        enabled = [r for r in resources if r.enabled and r.policy is not None and r.policy.enabled]
        await loop.run_in_executor(self._executor, self.store.set_resources, enabled)

        now = self._clock()
        due = [r for r in enabled if self.is_due(r, now)]
        if not due:
            return []

        await asyncio.gather(*(self._run_one(r) for r in due))
        return [r.id for r in due]

    async def _run_one(self, resource: ResourceDescriptor) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                self._executor,
                self.service.run_check, resource.id, ExecutionType.SCHEDULED, resource,
            )
        except Exception:
            logger.exception("Scheduled check failed: %s", resource.id)
