from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends

from suins_buddy.api.auth import require_webhook_secret
from suins_buddy.api.schemas import WebhookResponse
from suins_buddy.observability.logging import log
from suins_buddy.telegram.poller import dispatch_raw

router = APIRouter()


@router.post(
    "/telegram/webhook",
    response_model=WebhookResponse,
    dependencies=[Depends(require_webhook_secret)],
)
async def telegram_webhook(background: BackgroundTasks, payload: Any = Body(None)):
    """
    Always 200 once authenticated: a non-2xx makes Telegram redeliver the same
    update, and a malformed one would be redelivered forever.
    Handling runs after the response so slow lookups never hit Telegram's timeout.
    """
    if not isinstance(payload, dict):
        log(event="webhook_payload_ignored", payloadType=type(payload).__name__)
        return WebhookResponse()
    background.add_task(dispatch_raw, payload)
    return WebhookResponse()
