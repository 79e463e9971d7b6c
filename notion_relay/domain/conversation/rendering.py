from typing import List, Sequence
from datetime import datetime
import structlog

from notion_relay.application.telegram.schema.updates import InlineKeyboardButton, InlineKeyboardMarkup
from notion_relay.domain.models.records import LinkRecord, TaskRecord, TaskPriority
from . import callback_data
from .callback_data import CallbackAction, NEW_CATEGORY

logger = structlog.get_logger(__name__)

MARKDOWN = "Markdown"
BUTTONS_PER_ROW = 2

PRIORITY_BADGES = {
    TaskPriority.HIGH: "🔴",
    TaskPriority.MEDIUM: "🟡",
    TaskPriority.LOW: "🟢",
}

LINK_HELP = """
*Telegram → Notion Link Bot*

*Commands:*
/start - Start the bot
/help - Show this help message
/list - List recent links (last 10)
/search - Search links by keyword
/delete - Delete a link
/cancel - Cancel the current operation

*How to use:*
1️⃣ Send a URL
2️⃣ Choose a category (or ➕ create a new one)
3️⃣ Link saved to Notion ✅

*Example:*
`https://youtube.com/watch?v=example`
""".strip()

TASK_HELP = """
*ToDo Bot - Notion Task Manager*

*Quick Commands:*
• Send any text → Create a new task
• Send *l* → List all pending tasks
• /start or /help → Show this message
• /cancel → Cancel current operation

*Priority Levels:*
🔴 High - Urgent tasks
🟡 Medium - Normal tasks (default)
🟢 Low - Non-urgent tasks

*Task Actions:*
Each task has buttons to:
✅ Mark as done
✏️ Edit (title or priority)
🗑️ Delete
""".strip()


def escape_markdown(text: str) -> str:
    """Escape characters that legacy Telegram Markdown treats as markup"""
    for char in ("_", "*", "`", "["):
        text = text.replace(char, f"\\{char}")
    return text


def format_date(iso_string: str) -> str:
    if not iso_string:
        return "-"
    try:
        moment = datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    except ValueError:
        return iso_string
    return f"{moment.strftime('%b')} {moment.day}, {moment.year}"


def format_link(link: LinkRecord) -> str:
    return (
        f"🔗 *{escape_markdown(link.title)}*\n"
        f"📂 {escape_markdown(link.category)}\n"
        f"📅 {format_date(link.created_at)}\n"
        f"🌐 {link.url}"
    )


def format_task(task: TaskRecord) -> str:
    badge = PRIORITY_BADGES.get(task.priority, "⚪")
    return f"{badge} *{task.priority.value}* | {escape_markdown(task.title)}\n📅 {format_date(task.created_at)}"


def _rows(buttons: List[InlineKeyboardButton], per_row: int = BUTTONS_PER_ROW) -> List[List[InlineKeyboardButton]]:
    return [buttons[i:i + per_row] for i in range(0, len(buttons), per_row)]


def category_keyboard(categories: Sequence[str]) -> InlineKeyboardMarkup:
    """One button per category plus the button that asks for a new name.

    Categories whose payload exceeds the callback limit are left out.
    """

    buttons = []
    for name in categories:
        payload = callback_data.category(name)
        if not callback_data.fits(payload):
            logger.warning("Skipping category too long for a button", category=name)
            continue
        buttons.append(InlineKeyboardButton(text=name, callback_data=payload))
    buttons.append(InlineKeyboardButton(text="➕ New category", callback_data=callback_data.category(NEW_CATEGORY)))
    return InlineKeyboardMarkup(inline_keyboard=_rows(buttons))


def duplicate_keyboard(url: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="✅ Yes, save anyway", callback_data=callback_data.force_save(url)),
        InlineKeyboardButton(text="❌ Cancel", callback_data=callback_data.CANCEL)
    ]])


def delete_keyboard(record_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="🗑️ Delete", callback_data=callback_data.for_record(CallbackAction.DELETE, record_id))
    ]])


def task_actions_keyboard(record_id: str) -> InlineKeyboardMarkup:
    """Mark Done, Edit, Delete"""
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="✅ Mark Done", callback_data=callback_data.for_record(CallbackAction.DONE, record_id)),
            InlineKeyboardButton(text="✏️ Edit", callback_data=callback_data.for_record(CallbackAction.EDIT, record_id))
        ],
        [
            InlineKeyboardButton(text="🗑️ Delete", callback_data=callback_data.for_record(CallbackAction.DELETE, record_id))
        ]
    ])


def edit_options_keyboard(record_id: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(inline_keyboard=[
        [
            InlineKeyboardButton(text="📝 Edit Title", callback_data=callback_data.for_record(CallbackAction.EDIT_TITLE, record_id)),
            InlineKeyboardButton(text="🎯 Edit Priority", callback_data=callback_data.for_record(CallbackAction.EDIT_PRIORITY, record_id))
        ],
        [
            InlineKeyboardButton(text="❌ Cancel", callback_data=callback_data.CANCEL)
        ]
    ])


def priority_keyboard(record_id: str) -> InlineKeyboardMarkup:
    buttons = [
        InlineKeyboardButton(text=f"{PRIORITY_BADGES[value]} {value.value}", callback_data=callback_data.priority(record_id, value))
        for value in TaskPriority
    ]
    rows = _rows(buttons)
    rows.append([InlineKeyboardButton(text="❌ Cancel", callback_data=callback_data.CANCEL)])
    return InlineKeyboardMarkup(inline_keyboard=rows)
