import time
from datetime import datetime, timezone
from typing import Optional

DAY_MS = 24 * 3600 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_timestamp_ms(ts) -> Optional[int]:
    """
    Normalize an on-chain timestamp to epoch milliseconds (int).
    Accepts:
    - int/float: treated as epoch ms (or seconds if suspiciously small)
    - numeric string: u64 values arrive as strings over JSON-RPC
    Returns None for anything unparseable; an expiration is never guessed.
    """
    if ts is None or isinstance(ts, bool):
        return None
    if isinstance(ts, (int, float)):
        v = int(ts)
    elif isinstance(ts, str) and ts.strip().isdigit():
        v = int(ts.strip())
    else:
        return None
    # Heuristic: if looks like seconds (< 10^12), convert to ms.
    return v * 1000 if 0 < v < 10**12 else v


def format_utc(ms: int) -> str:
    """RFC 1123 style, e.g. 'Tue, 20 Oct 2026 10:00:00 GMT'."""
    dt = datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    return dt.strftime("%a, %d %b %Y %H:%M:%S GMT")
