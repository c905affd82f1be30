import pytest

from suins_buddy.core.urgency import (
    UrgencyLevel,
    days_left,
    describe_next_notification,
    level_for,
    parse_level,
    priority_of,
    should_escalate,
)
from suins_buddy.utils.time import DAY_MS


@pytest.mark.parametrize("days,expected", [
    (31, None),
    (365, None),
    (30, UrgencyLevel.D30),
    (15, UrgencyLevel.D30),
    (14, UrgencyLevel.D14),
    (4, UrgencyLevel.D14),
    (3, UrgencyLevel.D3),
    (2, UrgencyLevel.D3),
    (1, UrgencyLevel.D1),
    (0, UrgencyLevel.EXPIRED),
    (-7, UrgencyLevel.EXPIRED),
])
def test_level_for_thresholds(days, expected):
    assert level_for(days) == expected


def test_level_for_never_less_urgent_as_days_shrink():
    previous = 0
    for d in range(60, -5, -1):
        level = level_for(d)
        p = priority_of(level) if level else 0
        assert p >= previous
        previous = p


def test_days_left_floors_partial_days():
    now = 1_700_000_000_000
    assert days_left(now + 2 * DAY_MS + 1000, now) == 2
    assert days_left(now + DAY_MS - 1, now) == 0
    # Past expiration floors towards minus infinity
    assert days_left(now - 1, now) == -1


def test_priorities_are_one_through_five():
    assert [priority_of(lvl) for lvl in UrgencyLevel] == [1, 2, 3, 4, 5]


def test_should_escalate_is_strict():
    assert should_escalate(UrgencyLevel.D30, None)
    assert should_escalate(UrgencyLevel.D1, UrgencyLevel.D3)
    assert not should_escalate(UrgencyLevel.D3, UrgencyLevel.D3)
    assert not should_escalate(UrgencyLevel.D14, UrgencyLevel.D3)


def test_parse_level_unknown_values_read_as_never_notified():
    assert parse_level("3d") is UrgencyLevel.D3
    assert parse_level(None) is None
    assert parse_level("") is None
    assert parse_level("7d") is None


def test_describe_next_notification():
    assert describe_next_notification(40, None) == "in 10d"
    assert describe_next_notification(20, UrgencyLevel.D30) == "in 6d"
    # Inside the 30d tier but nothing sent yet
    assert describe_next_notification(20, None) == "pending"
    assert describe_next_notification(2, UrgencyLevel.D3) == "in 1d"
    assert describe_next_notification(0, UrgencyLevel.D1) == "expired"
    assert describe_next_notification(1, UrgencyLevel.D1) == "in 1d"
