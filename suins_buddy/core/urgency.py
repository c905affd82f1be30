"""
Urgency Ladder
--------------
Maps days-until-expiration to a discrete, ordered notification tier.

The most urgent tier whose threshold still covers `days_left` wins, so 2 days
left lands on "3d" and anything already past expiration lands on "expired".

Everything here is pure: no Redis, no clock reads (callers pass `now_ms`).
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from suins_buddy.utils.time import DAY_MS


class UrgencyLevel(str, Enum):
    D30 = "30d"
    D14 = "14d"
    D3 = "3d"
    D1 = "1d"
    EXPIRED = "expired"


# Least urgent first; priority follows this order.
THRESHOLDS: Tuple[Tuple[UrgencyLevel, int], ...] = (
    (UrgencyLevel.D30, 30),
    (UrgencyLevel.D14, 14),
    (UrgencyLevel.D3, 3),
    (UrgencyLevel.D1, 1),
    (UrgencyLevel.EXPIRED, 0),
)

_PRIORITY = {level: idx + 1 for idx, (level, _) in enumerate(THRESHOLDS)}


def days_left(expires_at_ms: int, now_ms: int) -> int:
    # Floor division keeps negative remainders flooring towards -inf.
    return (int(expires_at_ms) - int(now_ms)) // DAY_MS


def level_for(days: int) -> Optional[UrgencyLevel]:
    """Return the tier due for `days` left, or None when more than 30 days remain."""
    for level, threshold in reversed(THRESHOLDS):
        if days <= threshold:
            return level
    return None


def priority_of(level: UrgencyLevel) -> int:
    return _PRIORITY[UrgencyLevel(level)]


def parse_level(raw: Optional[str]) -> Optional[UrgencyLevel]:
    """Stored values that are not a known tier read as "never notified"."""
    if not raw:
        return None
    try:
        return UrgencyLevel(raw)
    except ValueError:
        return None


def should_escalate(new_level: UrgencyLevel, prior: Optional[UrgencyLevel]) -> bool:
    """Strict escalation only: same or lower tier never notifies again."""
    if prior is None:
        return True
    return priority_of(new_level) > priority_of(prior)


def describe_next_notification(days: int, last_level: Optional[UrgencyLevel]) -> str:
    """
    Human-readable estimate of the next reminder for the trackers list.
    Derived on every render from the ladder and the last sent tier; never used
    for scheduling.
    """
    if days <= 0:
        return "expired"

    last_priority = priority_of(last_level) if last_level else 0
    for level, threshold in THRESHOLDS:
        if priority_of(level) <= last_priority:
            continue
        if days > threshold:
            return f"in {days - threshold}d"
        # Already inside this tier but not notified yet: next sweep sends it.
        return "pending"
    return "done"
