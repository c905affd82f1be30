"""
Subscription Store
------------------
Durable state of the bot, all in Redis:

- `trackers:<subscriber>`            set of tracked names for one chat
- `all-tracked-names`                 union of every chat's set (GlobalTrackedSet)
- `all-subscribers`                   registry of chats that ever tracked a name
- `notifications:<subscriber>:<name>` last sent urgency tier, 60-day TTL

INVARIANT: a name is in `all-tracked-names` iff some `trackers:*` set holds it.
Every mutation touching a name runs under `name_locks.hold(name)`, so the
"does anyone else still track it" check in untrack can never miss a concurrent
track of the same name.
"""
from __future__ import annotations

import functools
from typing import Dict, List, Optional, Set

from redis.exceptions import RedisError

from suins_buddy.core.urgency import UrgencyLevel, parse_level
from suins_buddy.errors import StoreUnavailable
from suins_buddy.settings import settings
from suins_buddy.store.redis_conn import get_redis
from suins_buddy.utils.lock import name_locks


def _store_call(fn):
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except RedisError as e:
            raise StoreUnavailable(f"{fn.__name__}: {e}") from e
    return wrapper


def _trackers_key(subscriber: str) -> str:
    return f"{settings.TRACKERS_KEY_PREFIX}{subscriber}"


def _notification_key(subscriber: str, name: str) -> str:
    return f"{settings.NOTIFICATIONS_KEY_PREFIX}{subscriber}:{name}"


async def _tracked_by_anyone(name: str) -> bool:
    r = get_redis()
    async for key in r.scan_iter(match=f"{settings.TRACKERS_KEY_PREFIX}*"):
        if await r.sismember(key, name):
            return True
    return False


async def _remove_and_cleanup(subscriber: str, name: str) -> bool:
    """Caller must hold the name lock."""
    r = get_redis()
    removed = bool(await r.srem(_trackers_key(subscriber), name))
    if not await _tracked_by_anyone(name):
        await r.srem(settings.ALL_TRACKED_NAMES_KEY, name)
    return removed


@_store_call
async def track(subscriber: str, name: str) -> bool:
    """Returns False when the chat already tracks `name` (nothing changes)."""
    r = get_redis()
    async with name_locks.hold(name):
        if await r.sismember(_trackers_key(subscriber), name):
            return False
        await r.sadd(_trackers_key(subscriber), name)
        await r.sadd(settings.ALL_TRACKED_NAMES_KEY, name)
        await r.sadd(settings.ALL_SUBSCRIBERS_KEY, subscriber)
    return True


@_store_call
async def untrack(subscriber: str, name: str, forget_history: bool = False) -> bool:
    """`forget_history` also drops the sent tier, inside the same name lock."""
    async with name_locks.hold(name):
        removed = await _remove_and_cleanup(subscriber, name)
        if forget_history:
            await get_redis().delete(_notification_key(subscriber, name))
        return removed


@_store_call
async def list_tracked(subscriber: str) -> List[str]:
    names = await get_redis().smembers(_trackers_key(subscriber))
    return sorted(names or [])


@_store_call
async def list_all_trackers() -> Dict[str, Set[str]]:
    """
    Snapshot for one sweep. Not linearizable: a track/untrack landing while the
    keys are walked may or may not show up; the next sweep re-reads everything.
    """
    r = get_redis()
    prefix = settings.TRACKERS_KEY_PREFIX
    result: Dict[str, Set[str]] = {}
    async for key in r.scan_iter(match=f"{prefix}*"):
        names = await r.smembers(key)
        if names:
            result[key[len(prefix):]] = set(names)
    return result


@_store_call
async def erase_all(subscriber: str) -> List[str]:
    """Data-deletion request. Erasing an empty set is fine."""
    r = get_redis()
    names = sorted(await r.smembers(_trackers_key(subscriber)) or [])
    for name in names:
        async with name_locks.hold(name):
            await _remove_and_cleanup(subscriber, name)
        await r.delete(_notification_key(subscriber, name))
    await r.delete(_trackers_key(subscriber))
    await r.srem(settings.ALL_SUBSCRIBERS_KEY, subscriber)
    return names


@_store_call
async def is_registered(subscriber: str) -> bool:
    return bool(await get_redis().sismember(settings.ALL_SUBSCRIBERS_KEY, subscriber))


@_store_call
async def is_globally_tracked(name: str) -> bool:
    return bool(await get_redis().sismember(settings.ALL_TRACKED_NAMES_KEY, name))


@_store_call
async def count_tracked_names() -> int:
    return int(await get_redis().scard(settings.ALL_TRACKED_NAMES_KEY) or 0)


@_store_call
async def count_subscribers() -> int:
    return int(await get_redis().scard(settings.ALL_SUBSCRIBERS_KEY) or 0)


@_store_call
async def get_notified_level(subscriber: str, name: str) -> Optional[UrgencyLevel]:
    return parse_level(await get_redis().get(_notification_key(subscriber, name)))


@_store_call
async def set_notified_level(subscriber: str, name: str, level: UrgencyLevel) -> None:
    ttl = int(settings.NOTIFICATION_TTL_DAYS) * 24 * 3600
    await get_redis().set(_notification_key(subscriber, name), UrgencyLevel(level).value, ex=ttl)


@_store_call
async def record_notified_level(subscriber: str, name: str, level: UrgencyLevel) -> bool:
    """
    Like set_notified_level, but only while the chat still tracks `name`.
    Returns False (and writes nothing) when it was untracked in the meantime.
    """
    ttl = int(settings.NOTIFICATION_TTL_DAYS) * 24 * 3600
    r = get_redis()
    async with name_locks.hold(name):
        if not await r.sismember(_trackers_key(subscriber), name):
            return False
        await r.set(_notification_key(subscriber, name), UrgencyLevel(level).value, ex=ttl)
    return True


@_store_call
async def clear_notified_level(subscriber: str, name: str) -> None:
    await get_redis().delete(_notification_key(subscriber, name))
