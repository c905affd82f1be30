"""
Observability Metrics
---------------------
Lightweight Redis counters plus a bounded list of sweep latencies, read back by
/admin/stats. Missing keys (first boot) read as zero.
"""
from __future__ import annotations
import time
from typing import List, Tuple
from suins_buddy.store.redis_conn import get_redis
from suins_buddy.store import subscription_repo

# Keys (best-effort, stable across restarts)
K_SWEEP_RUNS = "metrics:sweep:runs"                # INCR
K_SWEEP_ABORTED = "metrics:sweep:aborted"          # INCR
K_SWEEP_SKIPPED = "metrics:sweep:skipped_overlap"  # INCR
K_SWEEP_LAT = "metrics:sweep:latencies"            # LPUSH ms
K_NOTIF_SENT = "metrics:notifications:sent"        # INCR
K_NOTIF_FAILED = "metrics:notifications:failed"    # INCR
K_LOOKUP_FAILED = "metrics:lookups:failed"         # INCR

_MAX_SAMPLES = 500  # cap to bound percentile computation cost

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

async def _incr(key: str, by: int = 1) -> None:
    if by:
        await get_redis().incr(key, by)

async def increment_sweep_run() -> None:
    await _incr(K_SWEEP_RUNS)

async def increment_sweep_aborted() -> None:
    await _incr(K_SWEEP_ABORTED)

async def increment_sweep_skipped() -> None:
    await _incr(K_SWEEP_SKIPPED)

async def record_sweep_latency(ms: int) -> None:
    r = get_redis()
    await r.lpush(K_SWEEP_LAT, int(ms))
    await r.ltrim(K_SWEEP_LAT, 0, _MAX_SAMPLES - 1)

async def record_sweep_outcomes(sent: int, failed: int, lookup_failed: int) -> None:
    await _incr(K_NOTIF_SENT, sent)
    await _incr(K_NOTIF_FAILED, failed)
    await _incr(K_LOOKUP_FAILED, lookup_failed)

async def _read_latencies_s() -> List[float]:
    raw = await get_redis().lrange(K_SWEEP_LAT, 0, _MAX_SAMPLES - 1) or []
    out: List[float] = []
    for x in raw:
        try:
            out.append(float(x) / 1000.0)
        except (TypeError, ValueError):
            continue
    return out

def _p50_p95(latencies_s: List[float]) -> Tuple[float, float]:
    if not latencies_s:
        return 0.0, 0.0
    return _percentile(latencies_s, 0.50), _percentile(latencies_s, 0.95)

async def _read_int(key: str) -> int:
    return int(await get_redis().get(key) or 0)

async def get_stats_snapshot() -> dict:
    """Shape consumed by /admin/stats."""
    p50, p95 = _p50_p95(await _read_latencies_s())
    return {
        "sweeps_run": await _read_int(K_SWEEP_RUNS),
        "sweeps_aborted": await _read_int(K_SWEEP_ABORTED),
        "sweeps_skipped_overlap": await _read_int(K_SWEEP_SKIPPED),
        "notifications_sent": await _read_int(K_NOTIF_SENT),
        "notifications_failed": await _read_int(K_NOTIF_FAILED),
        "lookups_failed": await _read_int(K_LOOKUP_FAILED),
        "p50_sweep_latency": round(p50, 3),
        "p95_sweep_latency": round(p95, 3),
        "tracked_names": await subscription_repo.count_tracked_names(),
        "subscribers": await subscription_repo.count_subscribers(),
        "snapshot_at": int(time.time()),
    }
