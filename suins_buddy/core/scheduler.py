"""
Notification Scheduler
----------------------
Hourly reconciliation sweep (plus one run shortly after start):

1) snapshot every (subscriber, name) pair from the subscription store
2) resolve the name's current expiration (once per name per sweep)
3) compute the urgency tier; more than 30 days left -> nothing to do
4) send only when the tier is strictly more urgent than the last one sent
5) persist the tier only after Telegram accepted the message, and only if the
   chat still tracks the name (it may have stopped while the send was in flight)

INVARIANTS:
- One pair failing (lookup, send, rendering) never stops the others.
- A failed send leaves the stored tier untouched, so the next sweep retries it.
- Redis failing aborts the whole pass; the next tick starts over.
- Passes never overlap: a tick that finds a pass running is skipped.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from redis.exceptions import RedisError

import suins_buddy.observability.metrics as metrics
from suins_buddy.core import render
from suins_buddy.core.urgency import days_left, level_for, should_escalate
from suins_buddy.errors import LookupUnavailable, StoreUnavailable, TransportFailure
from suins_buddy.observability.logging import log
from suins_buddy.settings import settings
from suins_buddy.store import subscription_repo
from suins_buddy.store.models import NameRecord
from suins_buddy.suins.client import get_resolver
from suins_buddy.telegram.client import get_telegram
from suins_buddy.utils.time import now_ms

SENT = "sent"
NOT_DUE = "not_due"
ALREADY_NOTIFIED = "already_notified"
NO_RECORD = "no_record"
LOOKUP_FAILED = "lookup_failed"
SEND_FAILED = "send_failed"
UNTRACKED = "untracked"
ERROR = "error"


@dataclass
class SweepReport:
    pairs: int = 0
    sent: int = 0
    not_due: int = 0
    already_notified: int = 0
    no_record: int = 0
    lookup_failed: int = 0
    send_failed: int = 0
    untracked: int = 0
    errors: int = 0
    elapsedMs: int = 0

    def count(self, outcome: str) -> None:
        self.pairs += 1
        if outcome == ERROR:
            self.errors += 1
        else:
            setattr(self, outcome, getattr(self, outcome) + 1)

    def to_dict(self) -> dict:
        return asdict(self)


class _LookupCache:
    """One resolution per name per sweep; failures are cached too."""

    def __init__(self) -> None:
        self._records: Dict[str, Optional[NameRecord]] = {}
        self._failures: Dict[str, LookupUnavailable] = {}

    async def get(self, name: str) -> Optional[NameRecord]:
        if name in self._failures:
            raise self._failures[name]
        if name not in self._records:
            try:
                self._records[name] = await get_resolver().lookup_by_name(name)
            except LookupUnavailable as e:
                self._failures[name] = e
                raise
        return self._records[name]


async def _process_pair(subscriber: str, name: str, lookups: _LookupCache, now: int) -> str:
    try:
        record = await lookups.get(name)
    except LookupUnavailable as e:
        log(event="sweep_pair_skipped", subscriber=subscriber, name=name, reason="lookup_failed", error=str(e)[:300])
        return LOOKUP_FAILED

    if record is None or not record.expiresAtMs:
        log(event="sweep_pair_skipped", subscriber=subscriber, name=name, reason="no_record")
        return NO_RECORD

    days = days_left(record.expiresAtMs, now)
    level = level_for(days)
    if level is None:
        return NOT_DUE

    prior = await subscription_repo.get_notified_level(subscriber, name)
    if not should_escalate(level, prior):
        return ALREADY_NOTIFIED

    text = render.notification_message(name, level, days, record.expiresAtMs)
    try:
        await get_telegram().send_message(subscriber, text, render.notification_keyboard(name))
    except TransportFailure as e:
        log(
            event="notification_send_failed",
            subscriber=subscriber,
            name=name,
            level=level.value,
            statusCode=e.status_code,
            error=str(e)[:300],
        )
        return SEND_FAILED

    if not await subscription_repo.record_notified_level(subscriber, name, level):
        log(event="notification_sent_untracked", subscriber=subscriber, name=name, level=level.value)
        return UNTRACKED
    log(
        event="notification_sent",
        subscriber=subscriber,
        name=name,
        level=level.value,
        previousLevel=prior.value if prior else None,
        daysLeft=days,
    )
    return SENT


async def run_sweep() -> Optional[SweepReport]:
    """
    One unguarded pass. Returns None when the pass was aborted because the
    store was unavailable. Callers go through NotificationScheduler.run_once.
    """
    start = time.monotonic()
    log(event="sweep_started")
    report = SweepReport()
    try:
        trackers = await subscription_repo.list_all_trackers()
        lookups = _LookupCache()
        now = now_ms()
        for subscriber, names in trackers.items():
            for name in sorted(names):
                try:
                    outcome = await _process_pair(subscriber, name, lookups, now)
                except StoreUnavailable:
                    raise
                except Exception as e:
                    log(
                        event="sweep_pair_error",
                        subscriber=subscriber,
                        name=name,
                        errorType=type(e).__name__,
                        error=str(e)[:300],
                    )
                    outcome = ERROR
                report.count(outcome)
    except StoreUnavailable as e:
        log(event="sweep_aborted", reason="store_unavailable", error=str(e)[:300], pairsDone=report.pairs)
        try:
            await metrics.increment_sweep_aborted()
        except RedisError:
            pass
        return None

    report.elapsedMs = int((time.monotonic() - start) * 1000)
    log(event="sweep_completed", **report.to_dict())
    try:
        await metrics.increment_sweep_run()
        await metrics.record_sweep_latency(report.elapsedMs)
        await metrics.record_sweep_outcomes(report.sent, report.send_failed, report.lookup_failed)
    except RedisError as e:
        log(event="sweep_metrics_failed", error=str(e)[:300])
    return report


class NotificationScheduler:
    """
    Timer around run_sweep: first pass after SWEEP_INITIAL_DELAY_SEC, then every
    SWEEP_INTERVAL_SEC. stop() lets a pass in flight finish (bounded by
    SWEEP_DRAIN_TIMEOUT_SEC) before the timer task ends.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._stopping: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_once(self) -> Optional[SweepReport]:
        if self._lock.locked():
            log(event="sweep_skipped_overlap")
            try:
                await metrics.increment_sweep_skipped()
            except RedisError:
                pass
            return None
        async with self._lock:
            return await run_sweep()

    async def _loop(self) -> None:
        delay = float(settings.SWEEP_INITIAL_DELAY_SEC)
        while not self._stopping.is_set():
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.run_once()
            except Exception as e:
                log(event="sweep_crashed", errorType=type(e).__name__, error=str(e)[:300])
            delay = float(settings.SWEEP_INTERVAL_SEC)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        log(
            event="scheduler_started",
            intervalSec=int(settings.SWEEP_INTERVAL_SEC),
            initialDelaySec=int(settings.SWEEP_INITIAL_DELAY_SEC),
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=float(settings.SWEEP_DRAIN_TIMEOUT_SEC))
        except asyncio.TimeoutError:
            log(event="scheduler_drain_timeout", timeoutSec=int(settings.SWEEP_DRAIN_TIMEOUT_SEC))
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        log(event="scheduler_stopped")


scheduler = NotificationScheduler()
