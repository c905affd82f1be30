"""
SuiNS record resolution over the Sui full node JSON-RPC API.

Three reads are needed by the bot:
- lookup_by_name: the NameRecord stored in the SuiNS registry table
- iter_owned_names / list_owned_names: every SuinsRegistration object held by an account
- resolve_owner: the account owning a registration NFT

Transport errors surface as LookupUnavailable ("unknown"); a record that is
confirmed missing comes back as None.
"""
from __future__ import annotations

import asyncio
import random
import time
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from suins_buddy.errors import LookupUnavailable
from suins_buddy.observability.logging import log
from suins_buddy.settings import settings
from suins_buddy.store.models import NameRecord, OwnedName
from suins_buddy.suins.names import domain_labels, normalize_name
from suins_buddy.utils.time import parse_timestamp_ms

_NOT_FOUND_CODES = {"dynamicFieldNotFound", "notExists", "deleted"}


class RpcError(Exception):
    def __init__(self, code: Any, message: str):
        super().__init__(f"{code}: {message}")
        self.code = code


def _option_address(value: Any) -> Optional[str]:
    """Move Option<address> shows up as a plain string, null, or {"vec": [...]}."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        vec = value.get("vec") or (value.get("fields") or {}).get("vec")
        if isinstance(vec, list) and vec:
            return str(vec[0])
    return None


def _fields(obj: Dict[str, Any]) -> Dict[str, Any]:
    return ((obj or {}).get("content") or {}).get("fields") or {}


class SuinsClient:
    def __init__(self, http: Optional[httpx.AsyncClient] = None):
        self._http = http or httpx.AsyncClient(timeout=settings.SUI_RPC_TIMEOUT_SEC)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, params: List[Any]) -> Any:
        """
        POST one JSON-RPC request. Retries transport failures within
        SUI_RPC_BUDGET_SEC; JSON-RPC errors are returned to the caller as RpcError
        because "not found" is an answer, not a failure.
        """
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        max_retries = max(1, int(settings.SUI_RPC_MAX_RETRIES))
        budget = float(settings.SUI_RPC_BUDGET_SEC)
        start = time.monotonic()
        attempt = 0
        last_err: Optional[Exception] = None

        while attempt < max_retries and (time.monotonic() - start) < budget:
            attempt += 1
            try:
                resp = await self._http.post(settings.SUI_RPC_URL, json=payload)
                resp.raise_for_status()
                data = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                last_err = e
                remaining = budget - (time.monotonic() - start)
                if remaining <= 0 or attempt >= max_retries:
                    break
                await asyncio.sleep(min(0.2 + random.uniform(0.0, 0.1), max(0.0, remaining)))
                continue

            if isinstance(data, dict) and data.get("error"):
                err = data["error"] or {}
                raise RpcError(err.get("code"), str(err.get("message") or ""))
            if not isinstance(data, dict) or "result" not in data:
                raise LookupUnavailable(f"{method}: malformed response")
            return data["result"]

        elapsed = round(time.monotonic() - start, 3)
        log(event="rpc_call_failed", method=method, attempts=attempt, elapsedSec=elapsed, error=str(last_err)[:300])
        raise LookupUnavailable(f"{method} failed (attempts={attempt}, elapsed={elapsed}s): {last_err}")

    async def lookup_by_name(self, name: str) -> Optional[NameRecord]:
        canonical = normalize_name(name)
        if not canonical:
            return None

        key = {
            "type": f"{settings.SUINS_PACKAGE_ID}::domain::Domain",
            "value": {"labels": domain_labels(canonical)},
        }
        try:
            result = await self._call("suix_getDynamicFieldObject", [settings.SUINS_REGISTRY_TABLE_ID, key])
        except RpcError as e:
            if str(e.code) in _NOT_FOUND_CODES:
                return None
            raise LookupUnavailable(str(e)) from e

        if not isinstance(result, dict):
            raise LookupUnavailable("suix_getDynamicFieldObject: malformed result")
        if result.get("error"):
            code = (result.get("error") or {}).get("code")
            if str(code) in _NOT_FOUND_CODES:
                return None
            raise LookupUnavailable(f"suix_getDynamicFieldObject: {code}")

        # Table entry: Field<Domain, NameRecord>; the record sits under value.fields
        value = _fields(result.get("data") or {}).get("value") or {}
        record = value.get("fields") if isinstance(value, dict) else None
        if not isinstance(record, dict):
            return None

        return NameRecord(
            name=canonical,
            expiresAtMs=parse_timestamp_ms(record.get("expiration_timestamp_ms")),
            targetAddress=_option_address(record.get("target_address")),
            nftId=record.get("nft_id") or None,
        )

    async def iter_owned_names(self, address: str) -> AsyncIterator[OwnedName]:
        """Yields every registration held by `address`, page after page."""
        query = {
            "filter": {"StructType": f"{settings.SUINS_PACKAGE_ID}::suins_registration::SuinsRegistration"},
            "options": {"showContent": True},
        }
        cursor = None
        for _ in range(int(settings.SUI_OWNED_MAX_PAGES)):
            try:
                page = await self._call(
                    "suix_getOwnedObjects",
                    [address, query, cursor, int(settings.SUI_OWNED_PAGE_SIZE)],
                )
            except RpcError as e:
                raise LookupUnavailable(str(e)) from e

            for item in (page or {}).get("data") or []:
                obj = (item or {}).get("data") or {}
                fields = _fields(obj)
                expires = parse_timestamp_ms(fields.get("expiration_timestamp_ms"))
                if not fields.get("domain_name") or expires is None:
                    log(event="owned_object_unparsed", objectId=obj.get("objectId"))
                    continue
                yield OwnedName(
                    objectId=str(obj.get("objectId") or ""),
                    name=str(fields["domain_name"]),
                    expiresAtMs=expires,
                )

            next_cursor = (page or {}).get("nextCursor")
            if not (page or {}).get("hasNextPage") or not next_cursor or next_cursor == cursor:
                return
            cursor = next_cursor

        log(event="owned_names_page_cap", address=address, maxPages=int(settings.SUI_OWNED_MAX_PAGES))

    async def list_owned_names(self, address: str) -> List[OwnedName]:
        return [owned async for owned in self.iter_owned_names(address)]

    async def resolve_owner(self, object_id: str) -> Optional[str]:
        """Only objects held directly by an account resolve; wrapped/shared ones do not."""
        try:
            result = await self._call("sui_getObject", [object_id, {"showOwner": True}])
        except RpcError as e:
            raise LookupUnavailable(str(e)) from e

        owner = ((result or {}).get("data") or {}).get("owner")
        if isinstance(owner, dict) and owner.get("AddressOwner"):
            return str(owner["AddressOwner"])
        return None


_client: Optional[SuinsClient] = None


def get_resolver() -> SuinsClient:
    global _client
    if _client is None:
        _client = SuinsClient()
    return _client


async def close_resolver() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
