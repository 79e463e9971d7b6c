from typing import List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, timezone


class TelegramModel(BaseModel):
    """Base for Bot API objects; unknown fields are ignored"""
    model_config = ConfigDict(extra="ignore")


class TelegramUser(TelegramModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    username: Optional[str] = None


class TelegramChat(TelegramModel):
    id: int
    type: str = "private"


class TelegramMessage(TelegramModel):
    message_id: int
    chat: TelegramChat
    date: int = 0
    from_user: Optional[TelegramUser] = Field(None, alias="from")
    text: Optional[str] = None


class TelegramCallbackQuery(TelegramModel):
    id: str
    from_user: TelegramUser = Field(alias="from")
    message: Optional[TelegramMessage] = None
    data: Optional[str] = None


class TelegramUpdate(TelegramModel):
    """Webhook payload"""
    update_id: int
    message: Optional[TelegramMessage] = None
    callback_query: Optional[TelegramCallbackQuery] = None

    def to_event(self) -> Optional["InboundEvent"]:
        """Normalize into the single event this invocation handles"""

        if self.message is not None:
            message = self.message
            return MessageEvent(
                chat_id=message.chat.id,
                user_id=message.from_user.id if message.from_user else None,
                text=(message.text or "").strip(),
                timestamp=datetime.fromtimestamp(message.date, tz=timezone.utc),
                message_id=message.message_id
            )

        if self.callback_query is not None and self.callback_query.message is not None:
            query = self.callback_query
            return CallbackEvent(
                callback_id=query.id,
                chat_id=query.message.chat.id,
                user_id=query.from_user.id,
                data=query.data or "",
                message_id=query.message.message_id
            )

        return None


class MessageEvent(BaseModel):
    """Text message sent by a user"""
    kind: Literal["message"] = "message"
    chat_id: int
    user_id: Optional[int] = None
    text: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message_id: Optional[int] = None


class CallbackEvent(BaseModel):
    """Inline button press"""
    kind: Literal["callback_query"] = "callback_query"
    callback_id: str
    chat_id: int
    user_id: int
    data: str = ""
    message_id: Optional[int] = None


InboundEvent = Union[MessageEvent, CallbackEvent]


class InlineKeyboardButton(BaseModel):
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None


class InlineKeyboardMarkup(BaseModel):
    inline_keyboard: List[List[InlineKeyboardButton]]

    def callback_payloads(self) -> List[str]:
        return [
            button.callback_data
            for row in self.inline_keyboard
            for button in row
            if button.callback_data
        ]
