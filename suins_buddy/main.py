from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse

from suins_buddy.api.routes import router
from suins_buddy.api.admin_routes import router as admin_router
from suins_buddy.core import render
from suins_buddy.core.scheduler import scheduler
from suins_buddy.errors import TransportFailure
from suins_buddy.observability.logging import log
from suins_buddy.settings import settings
from suins_buddy.store.redis_conn import close_redis
from suins_buddy.suins.client import close_resolver
from suins_buddy.telegram.client import close_telegram, get_telegram
from suins_buddy.telegram.poller import poller


async def _configure_bot() -> None:
    tg = get_telegram()
    try:
        await tg.set_my_commands(render.BOT_COMMANDS)
    except TransportFailure as e:
        # Menu is cosmetic; the bot works without it.
        log(event="set_commands_failed", error=str(e)[:300])

    if settings.UPDATE_MODE == "webhook":
        if not settings.WEBHOOK_URL:
            log(event="startup_misconfigured", reason="WEBHOOK_URL is required in webhook mode")
            raise RuntimeError("WEBHOOK_URL is required when UPDATE_MODE=webhook")
        await tg.set_webhook(settings.WEBHOOK_URL, settings.WEBHOOK_SECRET)
    else:
        # getUpdates is refused while a webhook is registered.
        await tg.delete_webhook()


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.NS_BOT_TOKEN:
        log(event="startup_misconfigured", reason="NS_BOT_TOKEN is not set")
        raise RuntimeError("NS_BOT_TOKEN is required")

    await _configure_bot()
    scheduler.start()
    if settings.UPDATE_MODE != "webhook":
        poller.start()
    log(event="startup_complete", updateMode=settings.UPDATE_MODE)
    try:
        yield
    finally:
        await poller.stop()
        await scheduler.stop()
        await close_telegram()
        await close_resolver()
        await close_redis()
        log(event="shutdown_complete")


app = FastAPI(title="SuiNS Buddy", lifespan=lifespan)

app.include_router(router)
app.include_router(admin_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "SuiNS Buddy is running. Telegram updates arrive via polling or POST /telegram/webhook.",
    }


@app.get("/health")
def health():
    return {"status": "ok"}


# Unhandled errors surface as a plain 500 body; details only go to the log.
@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log(event="request_failed", path=request.url.path, errorType=type(exc).__name__, error=str(exc)[:300])
    return JSONResponse(status_code=500, content={"ok": False, "error": "internal error"})
