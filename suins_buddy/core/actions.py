"""
Button actions.

Inline-keyboard payloads (callback_data) are parsed exactly once, here, into a
closed set of tagged variants. Handlers never look at raw payload strings.

Wire format (kept stable so buttons in old messages keep working):
    track-address                   SearchByAddress
    track-name                      SearchByName
    track-address:recent            SearchRecentOwner
    my-trackers                     ShowTrackers
    another-search                  AnotherSearch
    start                           Restart
    notify-name                     TrackPending
    stop-tracking-name:<index>      StopTrackingByIndex
    stop-tracking-name:inline:<nm>  StopTrackingByName
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from suins_buddy.errors import InvalidInput

SEARCH_ADDRESS = "track-address"
SEARCH_NAME = "track-name"
SEARCH_RECENT = f"{SEARCH_ADDRESS}:recent"
MY_TRACKERS = "my-trackers"
ANOTHER_SEARCH = "another-search"
RESTART = "start"
TRACK_NAME = "notify-name"
STOP_TRACKING_NAME = "stop-tracking-name"

# Telegram rejects callback_data longer than 64 bytes.
MAX_CALLBACK_DATA_BYTES = 64


@dataclass(frozen=True)
class SearchByAddress:
    pass


@dataclass(frozen=True)
class SearchByName:
    pass


@dataclass(frozen=True)
class SearchRecentOwner:
    pass


@dataclass(frozen=True)
class ShowTrackers:
    pass


@dataclass(frozen=True)
class AnotherSearch:
    pass


@dataclass(frozen=True)
class Restart:
    pass


@dataclass(frozen=True)
class TrackPending:
    pass


@dataclass(frozen=True)
class StopTrackingByIndex:
    index: int


@dataclass(frozen=True)
class StopTrackingByName:
    name: str


Action = Union[
    SearchByAddress,
    SearchByName,
    SearchRecentOwner,
    ShowTrackers,
    AnotherSearch,
    Restart,
    TrackPending,
    StopTrackingByIndex,
    StopTrackingByName,
]

ALL_ACTIONS = Action.__args__

_STATIC = {
    SEARCH_ADDRESS: SearchByAddress(),
    SEARCH_NAME: SearchByName(),
    SEARCH_RECENT: SearchRecentOwner(),
    MY_TRACKERS: ShowTrackers(),
    ANOTHER_SEARCH: AnotherSearch(),
    RESTART: Restart(),
    TRACK_NAME: TrackPending(),
}
_STATIC_ENCODED = {type(v): k for k, v in _STATIC.items()}


def parse_action(data: str) -> Action:
    """Raises InvalidInput for payloads this bot never produced."""
    raw = (data or "").strip()
    if raw in _STATIC:
        return _STATIC[raw]

    prefix = f"{STOP_TRACKING_NAME}:"
    if raw.startswith(prefix):
        rest = raw[len(prefix):]
        if rest.startswith("inline:"):
            name = rest[len("inline:"):].strip()
            if name:
                return StopTrackingByName(name=name)
        elif rest.isdigit():
            return StopTrackingByIndex(index=int(rest))

    raise InvalidInput("This button is no longer supported. Use /start")


def encode_action(action: Action) -> str:
    if isinstance(action, StopTrackingByIndex):
        data = f"{STOP_TRACKING_NAME}:{int(action.index)}"
    elif isinstance(action, StopTrackingByName):
        data = f"{STOP_TRACKING_NAME}:inline:{action.name}"
    else:
        data = _STATIC_ENCODED[type(action)]

    if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
        raise ValueError(f"callback_data too long: {data!r}")
    return data
