from typing import Dict, Any, Optional, Protocol
import time
import httpx
import structlog

from notion_relay.domain.models.results import ClientResult
from notion_relay.infrastructure.observability.logging import metrics
from .schema.updates import InlineKeyboardMarkup

logger = structlog.get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"


class MessagingClient(Protocol):
    """What the conversation engines need from the chat platform"""

    async def send_message(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
        disable_preview: bool = False
    ) -> bool: ...

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> bool: ...

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None
    ) -> bool: ...


class TelegramClient:
    """Bot API client. Calls are never retried; failures come back as False"""

    def __init__(
        self,
        token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = TELEGRAM_API_BASE
    ):
        self.base_url = f"{base_url}/bot{token}"
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
        disable_preview: bool = False
    ) -> bool:
        """Send a message to a chat"""

        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        payload.update(self._options(keyboard, parse_mode))
        if disable_preview:
            payload["disable_web_page_preview"] = True

        result = await self.call("sendMessage", payload)
        return result.ok

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> bool:
        """Acknowledge a button press"""

        payload: Dict[str, Any] = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text

        result = await self.call("answerCallbackQuery", payload)
        return result.ok

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None
    ) -> bool:
        """Replace the text (and keyboard) of a sent message"""

        payload: Dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        payload.update(self._options(keyboard, parse_mode))

        result = await self.call("editMessageText", payload)
        return result.ok

    async def set_webhook(self, url: str, secret_token: Optional[str] = None) -> ClientResult:
        payload: Dict[str, Any] = {"url": url, "allowed_updates": ["message", "callback_query"]}
        if secret_token:
            payload["secret_token"] = secret_token
        return await self.call("setWebhook", payload)

    async def delete_webhook(self) -> ClientResult:
        return await self.call("deleteWebhook", {})

    async def call(self, method: str, payload: Dict[str, Any]) -> ClientResult:
        """POST a Bot API method and unwrap the ``ok``/``result`` envelope"""

        started = time.perf_counter()
        try:
            response = await self._client.post(f"{self.base_url}/{method}", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Telegram call failed", method=method, error=str(e))
            return ClientResult.failure(str(e))
        finally:
            metrics.call_latency(
                f"telegram.{method}",
                (time.perf_counter() - started) * 1000
            )

        if not isinstance(data, dict):
            data = {}

        if not data.get("ok"):
            description = data.get("description", f"HTTP {response.status_code}")
            logger.warning("Telegram rejected call", method=method, error=description)
            return ClientResult.failure(description)

        return ClientResult.success(data.get("result"))

    async def close(self):
        await self._client.aclose()

    @staticmethod
    def _options(keyboard: Optional[InlineKeyboardMarkup], parse_mode: Optional[str]) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        if keyboard is not None:
            options["reply_markup"] = keyboard.model_dump(exclude_none=True)
        if parse_mode:
            options["parse_mode"] = parse_mode
        return options
