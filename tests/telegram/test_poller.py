import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from suins_buddy.errors import TransportFailure
from suins_buddy.telegram.poller import UpdatePoller


def _updates(*ids):
    return [{"update_id": i, "message": {"message_id": i, "chat": {"id": 100}, "text": "hi"}} for i in ids]


async def _run_until(poller, calls, count):
    with patch("suins_buddy.telegram.poller._ERROR_BACKOFF_SEC", 0.01):
        poller.start()
        for _ in range(50):
            if len(calls) >= count:
                break
            await asyncio.sleep(0.01)
        await poller.stop()


@pytest.mark.asyncio
@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
@patch("suins_buddy.telegram.poller.get_telegram")
async def test_poll_once_advances_offset_and_dispatches(mock_get_tg, mock_handle):
    tg = MagicMock()
    tg.get_updates = AsyncMock(side_effect=[_updates(5, 6), []])
    mock_get_tg.return_value = tg
    poller = UpdatePoller()

    assert await poller.poll_once() == 2
    await asyncio.gather(*list(poller._inflight))
    await poller.poll_once()

    assert mock_handle.await_count == 2
    assert tg.get_updates.await_args_list[1].args[0] == 7


@pytest.mark.asyncio
@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
@patch("suins_buddy.telegram.poller.get_telegram")
async def test_poll_once_skips_non_object_entries(mock_get_tg, mock_handle):
    tg = MagicMock()
    tg.get_updates = AsyncMock(return_value=["junk", 3] + _updates(9))
    mock_get_tg.return_value = tg
    poller = UpdatePoller()

    await poller.poll_once()
    await asyncio.gather(*list(poller._inflight))

    assert mock_handle.await_count == 1
    assert poller._offset == 10


@pytest.mark.asyncio
@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
@patch("suins_buddy.telegram.poller.get_telegram")
async def test_loop_survives_poll_failures_and_stops(mock_get_tg, mock_handle):
    tg = MagicMock()
    calls = []

    async def get_updates(offset, timeout_sec):
        calls.append(offset)
        if len(calls) == 1:
            raise TransportFailure("getUpdates", "Bad Gateway", status_code=502)
        await asyncio.sleep(3600)

    tg.get_updates = get_updates
    mock_get_tg.return_value = tg
    poller = UpdatePoller()

    await _run_until(poller, calls, 2)

    assert len(calls) == 2
    assert poller._task is None


@pytest.mark.asyncio
@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
@patch("suins_buddy.telegram.poller.get_telegram")
async def test_loop_survives_unexpected_errors(mock_get_tg, mock_handle):
    tg = MagicMock()
    calls = []

    async def get_updates(offset, timeout_sec):
        calls.append(offset)
        if len(calls) == 1:
            raise ValueError("unexpected payload")
        if len(calls) == 2:
            return _updates(4)
        await asyncio.sleep(3600)

    tg.get_updates = get_updates
    mock_get_tg.return_value = tg
    poller = UpdatePoller()

    await _run_until(poller, calls, 3)

    assert calls == [None, None, 5]
    assert mock_handle.await_count == 1
    assert poller._task is None
