import asyncio
import fnmatch
from typing import Dict, List, Optional, Set, Tuple
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from suins_buddy.errors import LookupUnavailable, TransportFailure
from suins_buddy.store.models import NameRecord, OwnedName


class InMemoryRedis:
    """
    Async stand-in for the subset of redis.asyncio.Redis the bot uses (decoded strings).
    Commands yield to the event loop so concurrent callers interleave between them.
    """

    def __init__(self):
        self.sets: Dict[str, Set[str]] = {}
        self.strings: Dict[str, str] = {}
        self.lists: Dict[str, List[str]] = {}
        self.ttl: Dict[str, int] = {}
        self.fail = False
        # (command, key) -> extra event-loop turns to wait before running it
        self.stalls: Dict[Tuple[str, Optional[str]], int] = {}

    async def _enter(self, command, key):
        if self.fail:
            raise RedisConnectionError("redis down")
        # Every command suspends once, like a network round trip would.
        await asyncio.sleep(0)
        for _ in range(self.stalls.get((command, key), 0)):
            await asyncio.sleep(0)

    # sets
    async def sadd(self, key, *values):
        await self._enter("sadd", key)
        s = self.sets.setdefault(key, set())
        before = len(s)
        s.update(str(v) for v in values)
        return len(s) - before

    async def srem(self, key, *values):
        await self._enter("srem", key)
        s = self.sets.get(key, set())
        removed = sum(1 for v in values if str(v) in s)
        s.difference_update(str(v) for v in values)
        if not s:
            self.sets.pop(key, None)
        return removed

    async def smembers(self, key):
        await self._enter("smembers", key)
        return set(self.sets.get(key, set()))

    async def sismember(self, key, value):
        await self._enter("sismember", key)
        return str(value) in self.sets.get(key, set())

    async def scard(self, key):
        await self._enter("scard", key)
        return len(self.sets.get(key, set()))

    async def scan_iter(self, match=None):
        await self._enter("scan_iter", match)
        keys = list(self.sets) + list(self.strings) + list(self.lists)
        for key in keys:
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    # strings
    async def get(self, key):
        await self._enter("get", key)
        return self.strings.get(key)

    async def set(self, key, value, ex=None):
        await self._enter("set", key)
        self.strings[key] = str(value)
        if ex is not None:
            self.ttl[key] = int(ex)
        return True

    async def delete(self, *keys):
        await self._enter("delete", keys[0] if keys else None)
        n = 0
        for key in keys:
            for table in (self.sets, self.strings, self.lists):
                if key in table:
                    del table[key]
                    n += 1
            self.ttl.pop(key, None)
        return n

    async def incr(self, key, amount=1):
        await self._enter("incr", key)
        value = int(self.strings.get(key, 0)) + int(amount)
        self.strings[key] = str(value)
        return value

    # lists
    async def lpush(self, key, *values):
        await self._enter("lpush", key)
        lst = self.lists.setdefault(key, [])
        for v in values:
            lst.insert(0, str(v))
        return len(lst)

    async def ltrim(self, key, start, end):
        await self._enter("ltrim", key)
        lst = self.lists.get(key, [])
        self.lists[key] = lst[start:end + 1]
        return True

    async def lrange(self, key, start, end):
        await self._enter("lrange", key)
        lst = self.lists.get(key, [])
        return list(lst[start:end + 1] if end >= 0 else lst[start:])

    async def aclose(self):
        return None


class RecordingTelegram:
    """Captures outgoing Bot API calls; `fail_sends` makes sendMessage fail."""

    def __init__(self):
        self.sent: List[dict] = []
        self.answers: List[dict] = []
        self.commands = None
        self.webhook = None
        self.webhook_deleted = False
        self.fail_sends = False
        self.fail_for: Set[str] = set()
        # awaited after a message is accepted: on_send(chat_id, text)
        self.on_send = None

    async def send_message(self, chat_id, text, keyboard=None, parse_mode="HTML"):
        if self.fail_sends or str(chat_id) in self.fail_for:
            raise TransportFailure("sendMessage", "Forbidden: bot was blocked by the user", status_code=403)
        self.sent.append({
            "chat_id": str(chat_id),
            "text": text,
            "markup": keyboard.to_markup() if keyboard is not None and len(keyboard) else None,
        })
        if self.on_send is not None:
            await self.on_send(str(chat_id), text)

    async def answer_callback_query(self, callback_query_id, text=None):
        self.answers.append({"id": callback_query_id, "text": text})

    async def set_my_commands(self, commands):
        self.commands = commands

    async def set_webhook(self, url, secret_token=""):
        self.webhook = (url, secret_token)

    async def delete_webhook(self):
        self.webhook_deleted = True

    async def get_updates(self, offset, timeout_sec):
        return []

    async def aclose(self):
        return None

    def texts(self, chat_id: Optional[str] = None) -> List[str]:
        return [m["text"] for m in self.sent if chat_id is None or m["chat_id"] == str(chat_id)]

    def buttons(self, index: int = -1) -> List[dict]:
        markup = self.sent[index]["markup"] or {"inline_keyboard": []}
        return [b for row in markup["inline_keyboard"] for b in row]


class StubResolver:
    def __init__(self):
        self.records: Dict[str, NameRecord] = {}
        self.owned: Dict[str, List[OwnedName]] = {}
        self.owners: Dict[str, str] = {}
        self.unavailable: Set[str] = set()
        self.lookups: List[str] = []

    async def lookup_by_name(self, name):
        self.lookups.append(name)
        if name in self.unavailable or "*" in self.unavailable:
            raise LookupUnavailable(f"lookup of {name} failed")
        return self.records.get(name)

    async def list_owned_names(self, address):
        if address in self.unavailable or "*" in self.unavailable:
            raise LookupUnavailable(f"owned names of {address} failed")
        return list(self.owned.get(address, []))

    async def resolve_owner(self, object_id):
        if object_id in self.unavailable or "*" in self.unavailable:
            raise LookupUnavailable(f"owner of {object_id} failed")
        return self.owners.get(object_id)

    async def aclose(self):
        return None


@pytest.fixture
def store():
    r = InMemoryRedis()
    with patch("suins_buddy.store.subscription_repo.get_redis", return_value=r), \
         patch("suins_buddy.store.session_repo.get_redis", return_value=r), \
         patch("suins_buddy.observability.metrics.get_redis", return_value=r):
        yield r


@pytest.fixture
def telegram():
    tg = RecordingTelegram()
    with patch("suins_buddy.core.orchestrator.get_telegram", return_value=tg), \
         patch("suins_buddy.core.scheduler.get_telegram", return_value=tg):
        yield tg


@pytest.fixture
def resolver():
    rs = StubResolver()
    with patch("suins_buddy.core.orchestrator.get_resolver", return_value=rs), \
         patch("suins_buddy.core.scheduler.get_resolver", return_value=rs):
        yield rs
