import hmac

from fastapi import Header, HTTPException
from suins_buddy.settings import settings


def require_webhook_secret(
    x_secret: str = Header(default="", alias="x-telegram-bot-api-secret-token"),
):
    """
    Telegram echoes the secret_token given to setWebhook in this header.
    - If WEBHOOK_SECRET is empty: accept every request.
    - If set: require an exact match.
    """
    if not settings.WEBHOOK_SECRET:
        return
    if not hmac.compare_digest(x_secret, settings.WEBHOOK_SECRET):
        raise HTTPException(status_code=401, detail="Invalid webhook secret")


def require_admin(x_admin_key: str = Header(default="", alias="x-admin-key")):
    if not settings.ADMIN_RBAC_ENABLED:
        return
    # Enabled without a configured key: reject all.
    if not settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Admin access disabled (no key configured)")
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(status_code=403, detail="Invalid admin key")
