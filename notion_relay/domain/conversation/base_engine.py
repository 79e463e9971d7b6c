from abc import ABC, abstractmethod
from typing import Optional
import structlog

from notion_relay.application.telegram.messaging_client import MessagingClient
from notion_relay.application.telegram.schema.updates import (
    InboundEvent, MessageEvent, CallbackEvent, InlineKeyboardMarkup
)
from notion_relay.domain.errors import RelayError, AuthorizationDenied, RateLimited, ExternalCallFailed
from notion_relay.domain.models.records import Mode, EditTarget
from notion_relay.domain.session import SessionStore, RateLimiter
from notion_relay.infrastructure.observability.logging import relay_logger, metrics
from notion_relay.infrastructure.security.allow_list import AllowList
from .callback_data import CallbackData, parse_callback_data
from .rendering import MARKDOWN

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "❌ Something went wrong. Please try again."
UNKNOWN_COMMAND = "❓ Unknown command. Use /help to see available commands."


class BaseConversationEngine(ABC):
    """Runs one inbound event to completion against the session state.

    Text messages pass the allow-list and the rate limiter before anything
    else; button presses only pass the allow-list.
    """

    name = "base"

    def __init__(
        self,
        messaging: MessagingClient,
        sessions: Optional[SessionStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        allow_list: Optional[AllowList] = None
    ):
        self.messaging = messaging
        self.sessions = sessions or SessionStore()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.allow_list = allow_list or AllowList()

    async def handle_event(self, event: InboundEvent) -> None:
        """Entry point; never raises"""

        structlog.contextvars.bind_contextvars(bot=self.name, chat_id=event.chat_id)
        metrics.update_received(self.name, event.kind)

        try:
            if isinstance(event, MessageEvent):
                await self._on_message(event)
            else:
                await self._on_callback(event)
        except RelayError as e:
            logger.info("Request ended with user-facing error", error_type=type(e).__name__)
            if isinstance(event, CallbackEvent):
                await self.messaging.answer_callback(event.callback_id, "Error")
            await self.reply(event.chat_id, e.user_message)
        except Exception as e:
            logger.exception("Unhandled error while processing event", error=str(e))
            if isinstance(event, CallbackEvent):
                await self.messaging.answer_callback(event.callback_id, "Error")
            await self.reply(event.chat_id, GENERIC_ERROR)
        finally:
            structlog.contextvars.unbind_contextvars("chat_id")

    async def _on_message(self, event: MessageEvent):
        self.check_access(event.user_id)
        relay_logger.log_bot_event("message", self.name, event.chat_id, data={"length": len(event.text)})
        await self.handle_message(event)

    async def _on_callback(self, event: CallbackEvent):
        if not self.allow_list.is_authorized(event.user_id):
            metrics.unauthorized(self.name)
            await self.messaging.answer_callback(event.callback_id, "Unauthorized")
            return

        callback = parse_callback_data(event.data)
        relay_logger.log_bot_event(
            "callback", self.name, event.chat_id,
            data={"action": callback.action.value if callback else None}
        )
        if callback is None:
            await self.messaging.answer_callback(event.callback_id)
            return

        await self.handle_callback(event, callback)

    def check_access(self, user_id: Optional[int]) -> None:
        """Authorization then rate limit; records the request when admitted"""

        if not self.allow_list.is_authorized(user_id):
            metrics.unauthorized(self.name)
            raise AuthorizationDenied()

        if self.rate_limiter.is_rate_limited(user_id):
            metrics.rate_limited(self.name)
            raise RateLimited(self.rate_limiter.remaining(user_id))

        self.rate_limiter.record_request(user_id)

    @abstractmethod
    async def handle_message(self, event: MessageEvent) -> None:
        """Interpret a text message that passed the gates"""
        pass

    @abstractmethod
    async def handle_callback(self, event: CallbackEvent, callback: CallbackData) -> None:
        """Handle a parsed button press"""
        pass

    # Outbound helpers

    async def reply(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        markdown: bool = False,
        disable_preview: bool = False
    ) -> bool:
        sent = await self.messaging.send_message(
            chat_id,
            text,
            keyboard=keyboard,
            parse_mode=MARKDOWN if markdown else None,
            disable_preview=disable_preview
        )
        if not sent:
            relay_logger.log_external_call("send_message", chat_id, success=False)
        return sent

    async def answer(self, event: CallbackEvent, text: Optional[str] = None) -> bool:
        return await self.messaging.answer_callback(event.callback_id, text)

    def report_failure(self, chat_id: int, error: ExternalCallFailed) -> None:
        relay_logger.log_external_call(error.operation, chat_id, success=False, error=error.error)
        metrics.external_failure(self.name, error.operation)

    # Mode transitions

    def enter_mode(self, chat_id: int, mode: Mode, trigger: Optional[str] = None) -> None:
        previous = self.sessions.get_mode(chat_id)
        self.sessions.set_mode(chat_id, mode)
        relay_logger.log_mode_transition(chat_id, previous.value, mode.value, trigger)

    def enter_edit(self, chat_id: int, target: EditTarget, trigger: Optional[str] = None) -> None:
        previous = self.sessions.get_mode(chat_id)
        self.sessions.set_edit_target(chat_id, target)
        relay_logger.log_mode_transition(chat_id, previous.value, f"{Mode.EDITING.value}:{target.field.value}", trigger)

    def leave_mode(self, chat_id: int, trigger: Optional[str] = None) -> None:
        previous = self.sessions.get_mode(chat_id)
        if previous == Mode.NORMAL:
            return
        self.sessions.clear_mode(chat_id)
        relay_logger.log_mode_transition(chat_id, previous.value, Mode.NORMAL.value, trigger)

    @staticmethod
    def command_of(text: str) -> Optional[str]:
        """Lower-cased command word, or None when the text is not a command"""

        if not text.startswith("/"):
            return None
        command = text.split()[0].lower()
        # /help@SomeBot in group chats
        return command.split("@", 1)[0]
