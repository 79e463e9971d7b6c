from typing import Optional
import hmac
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import structlog

from notion_relay.application.api.runtime import RelayRuntime
from notion_relay.application.telegram.schema.updates import TelegramUpdate
from notion_relay.domain.conversation.base_engine import BaseConversationEngine

logger = structlog.get_logger(__name__)

router = APIRouter()


def get_runtime(request: Request) -> RelayRuntime:
    runtime = request.app.state.runtime
    if runtime is None:
        raise HTTPException(status_code=503, detail="Relay not started")
    return runtime


async def verify_telegram_secret(
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(None)
):
    """Reject deliveries without the configured webhook secret"""

    expected = request.app.state.settings.telegram_webhook_secret
    if not expected:
        return
    if not x_telegram_bot_api_secret_token or not hmac.compare_digest(expected, x_telegram_bot_api_secret_token):
        logger.warning("Webhook secret mismatch", path=request.url.path)
        raise HTTPException(status_code=403, detail="Invalid webhook secret")


async def dispatch_update(request: Request, engine: BaseConversationEngine):
    """Parse one update and run it through an engine"""

    try:
        update = TelegramUpdate.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.error("Error parsing update", bot=engine.name, error=str(e))
        return JSONResponse({"ok": False}, status_code=500)

    structlog.contextvars.bind_contextvars(update_id=update.update_id)
    try:
        event = update.to_event()
        if event is None:
            logger.debug("Ignoring update without message or callback", bot=engine.name)
        else:
            await engine.handle_event(event)
    finally:
        structlog.contextvars.unbind_contextvars("update_id", "bot")

    return {"ok": True}


@router.post("/api/telegram", dependencies=[Depends(verify_telegram_secret)])
async def link_webhook(request: Request, runtime: RelayRuntime = Depends(get_runtime)):
    return await dispatch_update(request, runtime.link_engine)


@router.get("/api/telegram")
async def link_webhook_health():
    return {"status": "ok", "message": "Telegram bot webhook is running"}


@router.post("/api/todo", dependencies=[Depends(verify_telegram_secret)])
async def todo_webhook(request: Request, runtime: RelayRuntime = Depends(get_runtime)):
    return await dispatch_update(request, runtime.task_engine)


@router.get("/api/todo")
async def todo_webhook_health():
    return {"status": "ok", "bot": "todo"}
