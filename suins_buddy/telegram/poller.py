"""
Long-polling update source (UPDATE_MODE=polling).

Each update is handled in its own task so one slow chat never delays another;
per-chat ordering is enforced by the orchestrator's subscriber lock.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional, Set

from pydantic import ValidationError

from suins_buddy.api.schemas import Update
from suins_buddy.core.orchestrator import handle_update
from suins_buddy.errors import TransportFailure
from suins_buddy.observability.logging import log
from suins_buddy.settings import settings
from suins_buddy.telegram.client import get_telegram

_ERROR_BACKOFF_SEC = 3.0


async def dispatch_raw(raw: Dict[str, Any]) -> None:
    """Shared by the poller and the webhook route: parse, handle, never raise."""
    try:
        update = Update.model_validate(raw)
    except ValidationError as e:
        log(event="update_unparsed", updateId=raw.get("update_id"), error=str(e)[:300])
        return
    try:
        await handle_update(update)
    except Exception as e:
        log(event="update_failed", updateId=update.update_id, errorType=type(e).__name__, error=str(e)[:300])


class UpdatePoller:
    def __init__(self) -> None:
        self._offset: Optional[int] = None
        self._stopping: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()

    def _spawn(self, raw: Dict[str, Any]) -> None:
        task = asyncio.create_task(dispatch_raw(raw))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def poll_once(self) -> int:
        updates = await get_telegram().get_updates(self._offset, settings.POLL_TIMEOUT_SEC)
        for raw in updates:
            if not isinstance(raw, dict):
                continue
            update_id = raw.get("update_id")
            if isinstance(update_id, int):
                self._offset = update_id + 1
            self._spawn(raw)
        return len(updates)

    async def _backoff(self) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=_ERROR_BACKOFF_SEC)
        except asyncio.TimeoutError:
            pass

    async def _loop(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.poll_once()
            except TransportFailure as e:
                log(event="poll_failed", statusCode=e.status_code, error=str(e)[:300])
                await self._backoff()
            except Exception as e:
                log(event="poll_crashed", errorType=type(e).__name__, error=str(e)[:300])
                await self._backoff()

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        log(event="poller_started", timeoutSec=int(settings.POLL_TIMEOUT_SEC))

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stopping.set()
        # A long poll in flight would otherwise hold shutdown for POLL_TIMEOUT_SEC.
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)
        log(event="poller_stopped")


poller = UpdatePoller()
