from fastapi import APIRouter, Depends, HTTPException
from redis.exceptions import RedisError

import suins_buddy.observability.metrics as metrics
from suins_buddy.api.auth import require_admin
from suins_buddy.core.scheduler import scheduler
from suins_buddy.errors import StoreUnavailable
from suins_buddy.store import subscription_repo
from suins_buddy.store.session_repo import load_session
from suins_buddy.core.state_machine import state_label

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/subscriber/{subscriber_id}")
async def get_subscriber_snapshot(subscriber_id: str, _=Depends(require_admin)):
    """Tracked names with their last notified tier, plus the live session."""
    try:
        names = await subscription_repo.list_tracked(subscriber_id)
        levels = {}
        for name in names:
            level = await subscription_repo.get_notified_level(subscriber_id, name)
            levels[name] = level.value if level else None
        session = await load_session(subscriber_id)
        registered = await subscription_repo.is_registered(subscriber_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e)[:300])

    return {
        "subscriberId": subscriber_id,
        "registered": registered,
        "trackedNames": names,
        "notifiedLevels": levels,
        "state": state_label(session.waitingFor),
        "session": session.to_dict(),
    }


@router.get("/stats")
async def get_stats(_=Depends(require_admin)):
    """Observability snapshot backed by Redis counters."""
    try:
        return await metrics.get_stats_snapshot()
    except (StoreUnavailable, RedisError) as e:
        raise HTTPException(status_code=503, detail=str(e)[:300])


@router.post("/sweep")
async def trigger_sweep(_=Depends(require_admin)):
    """Runs one sweep now, unless one is already in flight."""
    if scheduler.running:
        await scheduler.run_once()  # records the skip
        return {"status": "skipped"}
    report = await scheduler.run_once()
    if report is None:
        return {"status": "aborted"}
    return {"status": "completed", "report": report.to_dict()}
