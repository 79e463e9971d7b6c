"""
Inline-button payload protocol.

Payloads are colon delimited: ``<action>`` or ``<action>:<argument>``, with
``priority:<record_id>:<High|Medium|Low>`` as the one three-part form.
Telegram caps callback data at 64 bytes.
"""

from typing import Optional
from pydantic import BaseModel
from enum import Enum

from notion_relay.domain.models.records import TaskPriority

MAX_CALLBACK_BYTES = 64
NEW_CATEGORY = "__other__"


class CallbackAction(str, Enum):
    CATEGORY = "category"
    DELETE = "delete"
    FORCE_SAVE = "force_save"
    CANCEL = "cancel"
    DONE = "done"
    EDIT = "edit"
    EDIT_TITLE = "edit_title"
    EDIT_PRIORITY = "edit_priority"
    PRIORITY = "priority"


# Actions whose argument may be empty
_OPTIONAL_ARGUMENT = {CallbackAction.FORCE_SAVE}


class CallbackData(BaseModel):
    """Parsed button payload"""
    action: CallbackAction
    argument: str = ""
    priority: Optional[TaskPriority] = None

    @property
    def wants_new_category(self) -> bool:
        return self.action == CallbackAction.CATEGORY and self.argument == NEW_CATEGORY

    def encode(self) -> str:
        if self.action == CallbackAction.CANCEL:
            return self.action.value
        if self.action == CallbackAction.PRIORITY:
            return f"{self.action.value}:{self.argument}:{self.priority.value}"
        return f"{self.action.value}:{self.argument}"


def parse_callback_data(data: Optional[str]) -> Optional[CallbackData]:
    """Parse a payload; None for anything malformed or unknown"""

    if not data:
        return None

    if data == CallbackAction.CANCEL.value:
        return CallbackData(action=CallbackAction.CANCEL)

    prefix, sep, argument = data.partition(":")
    if not sep:
        return None

    try:
        action = CallbackAction(prefix)
    except ValueError:
        return None

    if action == CallbackAction.CANCEL:
        return None

    if action == CallbackAction.PRIORITY:
        record_id, sep, priority = argument.rpartition(":")
        if not sep or not record_id:
            return None
        try:
            return CallbackData(action=action, argument=record_id, priority=TaskPriority(priority))
        except ValueError:
            return None

    if not argument and action not in _OPTIONAL_ARGUMENT:
        return None

    return CallbackData(action=action, argument=argument)


def fits(payload: str) -> bool:
    """Whether Telegram accepts the payload as callback data"""
    return len(payload.encode("utf-8")) <= MAX_CALLBACK_BYTES


def category(name: str) -> str:
    return CallbackData(action=CallbackAction.CATEGORY, argument=name).encode()


def force_save(url: str) -> str:
    """Force-save payload; falls back to an empty argument when the URL is too long"""

    payload = CallbackData(action=CallbackAction.FORCE_SAVE, argument=url).encode()
    if not fits(payload):
        return CallbackData(action=CallbackAction.FORCE_SAVE).encode()
    return payload


def for_record(action: CallbackAction, record_id: str) -> str:
    return CallbackData(action=action, argument=record_id).encode()


def priority(record_id: str, value: TaskPriority) -> str:
    return CallbackData(action=CallbackAction.PRIORITY, argument=record_id, priority=value).encode()


CANCEL = CallbackAction.CANCEL.value
