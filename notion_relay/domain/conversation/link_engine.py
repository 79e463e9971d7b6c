from typing import List, Optional, Sequence
import re
import structlog

from notion_relay.application.telegram.messaging_client import MessagingClient
from notion_relay.application.telegram.schema.updates import MessageEvent, CallbackEvent
from notion_relay.domain.errors import ExternalCallFailed, ValidationFailed, SessionExpired
from notion_relay.domain.models.records import Mode, LinkRecord
from notion_relay.domain.session import SessionStore, RateLimiter
from notion_relay.infrastructure.notion.records import LinkRepository
from notion_relay.infrastructure.security.allow_list import AllowList
from . import callback_data, rendering
from .base_engine import BaseConversationEngine, UNKNOWN_COMMAND
from .callback_data import CallbackAction, CallbackData

logger = structlog.get_logger(__name__)

URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
MAX_CATEGORY_LENGTH = 50
RECENT_LIMIT = 10


def extract_url(text: str) -> Optional[str]:
    """First http(s) URL in the text"""
    match = URL_PATTERN.search(text)
    return match.group(0) if match else None


class LinkConversationEngine(BaseConversationEngine):
    """Link bot: capture a URL, pick a category, save it to Notion"""

    name = "link"

    def __init__(
        self,
        messaging: MessagingClient,
        links: LinkRepository,
        sessions: Optional[SessionStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        allow_list: Optional[AllowList] = None,
        default_categories: Sequence[str] = ("Work", "Study", "Video", "Other")
    ):
        super().__init__(messaging, sessions, rate_limiter, allow_list)
        self.links = links
        self.default_categories = list(default_categories)

    async def handle_message(self, event: MessageEvent) -> None:
        chat_id = event.chat_id
        text = event.text
        command = self.command_of(text)
        mode = self.sessions.get_mode(chat_id)

        if mode == Mode.AWAITING_CATEGORY_TEXT and command in (None, "/cancel"):
            await self.handle_new_category_input(chat_id, text, command)
            return

        if mode == Mode.AWAITING_SEARCH_KEYWORD and command in (None, "/cancel"):
            await self.handle_search_query(chat_id, text, command)
            return

        if command:
            await self.handle_command(chat_id, command)
            return

        url = extract_url(text)
        if url:
            await self.handle_url(chat_id, url)
            return

        await self.reply(chat_id, "❓ Please send a URL or use /help to see available commands.")

    async def handle_command(self, chat_id: int, command: str) -> None:
        if command in ("/start", "/help"):
            await self.reply(chat_id, rendering.LINK_HELP, markdown=True)
        elif command == "/list":
            await self.handle_list(chat_id)
        elif command == "/search":
            self.enter_mode(chat_id, Mode.AWAITING_SEARCH_KEYWORD, trigger="/search")
            await self.reply(
                chat_id,
                "🔍 *Search Mode Enabled*\n\nSend a keyword to search for links.\nUse /cancel to exit search mode.",
                markdown=True
            )
        elif command == "/delete":
            await self.reply(
                chat_id,
                "⚠️ Delete functionality is available via the buttons when listing links. Use /list to see your links."
            )
        elif command == "/cancel":
            if self.sessions.get_pending_url(chat_id):
                self.sessions.reset(chat_id)
                await self.reply(chat_id, "❌ Cancelled.")
            else:
                await self.reply(chat_id, "ℹ️ Nothing to cancel.")
        else:
            await self.reply(chat_id, UNKNOWN_COMMAND)

    async def handle_url(self, chat_id: int, url: str) -> None:
        """Hold the URL and offer categories, or ask first when it is already saved"""

        self.sessions.set_pending_url(chat_id, url)

        try:
            duplicate = await self.links.is_duplicate(url)
        except ExternalCallFailed as e:
            # A failed check counts as not a duplicate
            self.report_failure(chat_id, e)
            duplicate = False

        if duplicate:
            await self.reply(
                chat_id,
                "⚠️ This URL already exists in your database!\n\nDo you want to save it again?",
                keyboard=rendering.duplicate_keyboard(url)
            )
            return

        await self.send_category_buttons(chat_id, "📎 URL received! Choose a category:")

    async def send_category_buttons(self, chat_id: int, text: str) -> bool:
        categories = await self.available_categories(chat_id)
        return await self.reply(chat_id, text, keyboard=rendering.category_keyboard(categories))

    async def available_categories(self, chat_id: int) -> List[str]:
        try:
            categories = await self.links.categories()
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            return list(self.default_categories)
        return categories or list(self.default_categories)

    async def handle_callback(self, event: CallbackEvent, callback: CallbackData) -> None:
        chat_id = event.chat_id

        if callback.action == CallbackAction.CANCEL:
            self.sessions.clear_pending_url(chat_id)
            self.leave_mode(chat_id, trigger="cancel button")
            await self.answer(event, "Cancelled")
            await self.reply(chat_id, "❌ Cancelled.")

        elif callback.action == CallbackAction.FORCE_SAVE:
            url = callback.argument or self.sessions.get_pending_url(chat_id)
            if not url:
                self.leave_mode(chat_id, trigger="session expired")
                raise SessionExpired()
            self.sessions.set_pending_url(chat_id, url)
            await self.answer(event)
            await self.send_category_buttons(chat_id, "📎 Choose a category:")

        elif callback.wants_new_category:
            if not self.sessions.get_pending_url(chat_id):
                self.leave_mode(chat_id, trigger="session expired")
                raise SessionExpired()
            self.enter_mode(chat_id, Mode.AWAITING_CATEGORY_TEXT, trigger="new category button")
            await self.answer(event)
            await self.reply(
                chat_id,
                "✏️ *Enter new category name:*\n\nType the name for your new category.\nUse /cancel to cancel.",
                markdown=True
            )

        elif callback.action == CallbackAction.CATEGORY:
            await self.handle_category_selection(event, callback.argument)

        elif callback.action == CallbackAction.DELETE:
            await self.handle_delete(event, callback.argument)

        else:
            await self.answer(event)

    async def handle_category_selection(self, event: CallbackEvent, category: str) -> None:
        chat_id = event.chat_id
        url = self.sessions.get_pending_url(chat_id)

        if not url:
            self.leave_mode(chat_id, trigger="session expired")
            await self.answer(event, "URL not found. Please send it again.")
            await self.reply(chat_id, SessionExpired.user_message)
            return

        try:
            await self.links.save(url, category)
        except ExternalCallFailed as e:
            # Pending URL is kept so another button press can retry
            self.report_failure(chat_id, e)
            await self.answer(event, "Error saving")
            await self.reply(chat_id, f"❌ Error saving to Notion: {e.error}\n\nPlease try again.")
            return

        self.sessions.clear_pending_url(chat_id)
        self.leave_mode(chat_id, trigger="category button")
        await self.answer(event, "Saved successfully!")
        if event.message_id is not None:
            await self.messaging.edit_message(chat_id, event.message_id, f"📂 Saved under {category}")
        await self.reply(
            chat_id,
            f"✅ *Link saved successfully!*\n\n📂 Category: {rendering.escape_markdown(category)}\n🌐 {url}",
            markdown=True
        )

    async def handle_new_category_input(self, chat_id: int, text: str, command: Optional[str] = None) -> None:
        if command == "/cancel":
            self.sessions.reset(chat_id)
            await self.reply(chat_id, "❌ Cancelled.")
            return

        try:
            name = self.validate_category_name(text)
        except ValidationFailed as e:
            await self.reply(chat_id, e.user_message)
            return

        url = self.sessions.get_pending_url(chat_id)
        if not url:
            self.leave_mode(chat_id, trigger="session expired")
            await self.reply(chat_id, SessionExpired.user_message)
            return

        try:
            stored_name = await self.links.add_category(name)
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, "❌ Error adding category to database. Please try again or use /cancel to cancel.")
            return

        try:
            await self.links.save(url, stored_name)
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, f"❌ Error saving to Notion: {e.error}\n\nPlease try again or use /cancel to cancel.")
            return

        self.sessions.reset(chat_id)
        await self.reply(
            chat_id,
            f"✅ *Link saved successfully!*\n\n📂 Category: {rendering.escape_markdown(stored_name)} (NEW)\n🌐 {url}",
            markdown=True
        )

    @staticmethod
    def validate_category_name(text: str) -> str:
        name = text.strip()
        if not name:
            raise ValidationFailed("⚠️ Category name cannot be empty. Please try again or use /cancel to cancel.")
        if len(name) > MAX_CATEGORY_LENGTH:
            raise ValidationFailed(
                f"⚠️ Category name is too long (max {MAX_CATEGORY_LENGTH} characters). "
                "Please try again or use /cancel to cancel."
            )
        if not callback_data.fits(callback_data.category(name)):
            raise ValidationFailed(
                "⚠️ Category name is too long for a button. "
                "Please use a shorter name or use /cancel to cancel."
            )
        return name

    async def handle_search_query(self, chat_id: int, keyword: str, command: Optional[str] = None) -> None:
        if command == "/cancel":
            self.leave_mode(chat_id, trigger="/cancel")
            await self.reply(chat_id, "❌ Search mode cancelled.")
            return

        if not keyword:
            await self.reply(chat_id, "⚠️ Please send a keyword or use /cancel to exit search mode.")
            return

        self.leave_mode(chat_id, trigger="search")
        try:
            links = await self.links.search(keyword)
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, "❌ Error searching. Please try again.")
            return

        if not links:
            await self.reply(chat_id, f"🔍 No links found for: *{rendering.escape_markdown(keyword)}*", markdown=True)
            return

        await self.reply(
            chat_id,
            f"🔍 *Search Results* ({len(links)})\nKeyword: *{rendering.escape_markdown(keyword)}*\n",
            markdown=True
        )
        await self.send_links(chat_id, links)

    async def handle_list(self, chat_id: int) -> None:
        try:
            links = await self.links.recent(RECENT_LIMIT)
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, "❌ Error fetching links. Please try again.")
            return

        if not links:
            await self.reply(chat_id, "📭 No links found in your database.")
            return

        await self.reply(chat_id, f"📚 *Recent Links* ({len(links)})\n", markdown=True)
        await self.send_links(chat_id, links)

    async def send_links(self, chat_id: int, links: List[LinkRecord]) -> None:
        for link in links:
            await self.reply(
                chat_id,
                rendering.format_link(link),
                keyboard=rendering.delete_keyboard(link.id),
                markdown=True,
                disable_preview=True
            )

    async def handle_delete(self, event: CallbackEvent, record_id: str) -> None:
        try:
            await self.links.archive(record_id)
        except ExternalCallFailed as e:
            self.report_failure(event.chat_id, e)
            await self.answer(event, "Error deleting")
            await self.reply(event.chat_id, "❌ Error deleting link. Please try again.")
            return

        await self.answer(event, "Deleted successfully!")
        await self.reply(event.chat_id, "🗑️ Link deleted successfully!")
