import json
import inspect

from redis.exceptions import RedisError

from suins_buddy.errors import StoreUnavailable
from suins_buddy.settings import settings
from suins_buddy.store.redis_conn import get_redis
from suins_buddy.store.models import SessionState, NameRecord
from suins_buddy.core import state_machine as sm
from suins_buddy.observability.logging import log


def _key(subscriber: str) -> str:
    return f"{settings.SESSION_KEY_PREFIX}{subscriber}"


def _filter_session_kwargs(data: dict) -> dict:
    """
    Drop unknown fields so SessionState(**kwargs) never explodes
    """
    sig = inspect.signature(SessionState)
    allowed = set(sig.parameters.keys())
    return {k: v for k, v in data.items() if k in allowed}


def _rehydrate(data: dict) -> dict:
    """
    Turn JSON shapes back into the frozen value types and drop values that
    no longer mean anything (e.g. a wait state from an older release).
    """
    data["pendingTrack"] = NameRecord.from_dict(data.get("pendingTrack"))

    listed = data.get("lastListedNames")
    data["lastListedNames"] = tuple(str(n) for n in listed) if isinstance(listed, list) else None

    if data.get("waitingFor") not in sm.WAIT_STATES:
        data["waitingFor"] = None

    data["triedUnknownCommand"] = bool(data.get("triedUnknownCommand"))
    return data


async def load_session(subscriber: str) -> SessionState:
    try:
        raw = await get_redis().get(_key(subscriber))
    except RedisError as e:
        raise StoreUnavailable(str(e)) from e
    if not raw:
        return SessionState()

    try:
        data = json.loads(raw)
    except ValueError:
        # Sessions are disposable: start over rather than fail the interaction.
        log(event="session_corrupt_reset", subscriber=subscriber)
        return SessionState()
    if not isinstance(data, dict):
        return SessionState()

    data = _filter_session_kwargs(data)
    return SessionState(**_rehydrate(data))


async def save_session(subscriber: str, session: SessionState) -> None:
    try:
        await get_redis().set(
            _key(subscriber),
            json.dumps(session.to_dict()),
            ex=int(settings.SESSION_TTL_SEC),
        )
    except RedisError as e:
        raise StoreUnavailable(str(e)) from e


async def clear_session(subscriber: str) -> None:
    try:
        await get_redis().delete(_key(subscriber))
    except RedisError as e:
        raise StoreUnavailable(str(e)) from e
