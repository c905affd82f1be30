from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from suins_buddy.main import app

client = TestClient(app)

UPDATE = {
    "update_id": 99,
    "message": {"message_id": 1, "chat": {"id": 100, "type": "private"}, "text": "/start"},
}


@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
def test_webhook_dispatches_update(mock_handle):
    resp = client.post("/telegram/webhook", json=UPDATE)
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    mock_handle.assert_awaited_once()
    update = mock_handle.await_args.args[0]
    assert update.update_id == 99
    assert update.message.text == "/start"


@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
def test_webhook_malformed_update_still_ok(mock_handle):
    resp = client.post("/telegram/webhook", json={"message": {"text": "no ids"}})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    mock_handle.assert_not_awaited()


@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
def test_webhook_handler_crash_still_ok(mock_handle):
    mock_handle.side_effect = RuntimeError("boom")
    resp = client.post("/telegram/webhook", json=UPDATE)
    assert resp.status_code == 200


@patch("suins_buddy.telegram.poller.handle_update", new_callable=AsyncMock)
@patch("suins_buddy.api.auth.settings.WEBHOOK_SECRET", "s3cret")
def test_webhook_secret_enforced(mock_handle):
    resp = client.post("/telegram/webhook", json=UPDATE)
    assert resp.status_code == 401
    resp = client.post("/telegram/webhook", json=UPDATE, headers={"x-telegram-bot-api-secret-token": "wrong"})
    assert resp.status_code == 401
    mock_handle.assert_not_awaited()

    resp = client.post("/telegram/webhook", json=UPDATE, headers={"x-telegram-bot-api-secret-token": "s3cret"})
    assert resp.status_code == 200
    mock_handle.assert_awaited_once()


def test_liveness_endpoints():
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/").json()["status"] == "ok"
