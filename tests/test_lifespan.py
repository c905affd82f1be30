from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from suins_buddy.main import app


def _background_doubles():
    sched = MagicMock()
    sched.stop = AsyncMock()
    poll = MagicMock()
    poll.stop = AsyncMock()
    return sched, poll


@patch("suins_buddy.main.settings.NS_BOT_TOKEN", "")
def test_startup_refuses_without_token():
    with pytest.raises(RuntimeError, match="NS_BOT_TOKEN"):
        with TestClient(app):
            pass


@patch("suins_buddy.main.close_redis", new_callable=AsyncMock)
@patch("suins_buddy.main.close_resolver", new_callable=AsyncMock)
@patch("suins_buddy.main.close_telegram", new_callable=AsyncMock)
@patch("suins_buddy.main.settings.UPDATE_MODE", "polling")
@patch("suins_buddy.main.settings.NS_BOT_TOKEN", "123:abc")
def test_polling_mode_lifecycle(mock_close_tg, mock_close_rs, mock_close_redis, telegram):
    tg = telegram
    sched, poll = _background_doubles()
    with patch("suins_buddy.main.get_telegram", return_value=tg), \
         patch("suins_buddy.main.scheduler", sched), \
         patch("suins_buddy.main.poller", poll):
        with TestClient(app) as c:
            assert c.get("/health").status_code == 200
            assert tg.webhook_deleted is True
            assert [cmd["command"] for cmd in tg.commands][0] == "start"
            sched.start.assert_called_once()
            poll.start.assert_called_once()

    sched.stop.assert_awaited_once()
    poll.stop.assert_awaited_once()
    mock_close_tg.assert_awaited_once()
    mock_close_rs.assert_awaited_once()
    mock_close_redis.assert_awaited_once()


@patch("suins_buddy.main.close_redis", new_callable=AsyncMock)
@patch("suins_buddy.main.close_resolver", new_callable=AsyncMock)
@patch("suins_buddy.main.close_telegram", new_callable=AsyncMock)
@patch("suins_buddy.main.settings.WEBHOOK_SECRET", "s3cret")
@patch("suins_buddy.main.settings.WEBHOOK_URL", "https://bot.example/telegram/webhook")
@patch("suins_buddy.main.settings.UPDATE_MODE", "webhook")
@patch("suins_buddy.main.settings.NS_BOT_TOKEN", "123:abc")
def test_webhook_mode_registers_webhook(mock_close_tg, mock_close_rs, mock_close_redis, telegram):
    tg = telegram
    sched, poll = _background_doubles()
    with patch("suins_buddy.main.get_telegram", return_value=tg), \
         patch("suins_buddy.main.scheduler", sched), \
         patch("suins_buddy.main.poller", poll):
        with TestClient(app):
            assert tg.webhook == ("https://bot.example/telegram/webhook", "s3cret")
            poll.start.assert_not_called()
