from typing import Optional
import structlog

from notion_relay.application.telegram.messaging_client import MessagingClient
from notion_relay.application.telegram.schema.updates import MessageEvent, CallbackEvent
from notion_relay.domain.errors import ExternalCallFailed, ValidationFailed
from notion_relay.domain.models.records import Mode, EditField, EditTarget, TaskPriority, TaskRecord
from notion_relay.domain.session import SessionStore, RateLimiter
from notion_relay.infrastructure.notion.records import TaskRepository
from notion_relay.infrastructure.security.allow_list import AllowList
from . import rendering
from .base_engine import BaseConversationEngine, UNKNOWN_COMMAND
from .callback_data import CallbackAction, CallbackData

logger = structlog.get_logger(__name__)

MAX_TASK_LENGTH = 500
LIST_SHORTCUT = "l"


class TaskConversationEngine(BaseConversationEngine):
    """Task bot: free text becomes a task, buttons manage it"""

    name = "todo"

    def __init__(
        self,
        messaging: MessagingClient,
        tasks: TaskRepository,
        sessions: Optional[SessionStore] = None,
        rate_limiter: Optional[RateLimiter] = None,
        allow_list: Optional[AllowList] = None
    ):
        super().__init__(messaging, sessions, rate_limiter, allow_list)
        self.tasks = tasks

    async def handle_message(self, event: MessageEvent) -> None:
        chat_id = event.chat_id
        text = event.text
        command = self.command_of(text)

        if command:
            await self.handle_command(chat_id, command)
            return

        if text.lower() == LIST_SHORTCUT:
            await self.handle_list(chat_id)
            return

        target = self.sessions.get_edit_target(chat_id)
        if target is not None and target.field == EditField.TITLE:
            await self.handle_title_input(chat_id, text, target.record_id)
            return

        await self.handle_create(chat_id, text)

    async def handle_command(self, chat_id: int, command: str) -> None:
        if command in ("/start", "/help"):
            await self.reply(chat_id, rendering.TASK_HELP, markdown=True)
        elif command == "/list":
            await self.handle_list(chat_id)
        elif command == "/cancel":
            if self.sessions.get_mode(chat_id) == Mode.EDITING:
                self.leave_mode(chat_id, trigger="/cancel")
                await self.reply(chat_id, "❌ Edit cancelled.")
            else:
                await self.reply(chat_id, "ℹ️ Nothing to cancel.")
        else:
            await self.reply(chat_id, UNKNOWN_COMMAND)

    @staticmethod
    def validate_text(text: str, what: str = "Task", hint: str = "") -> str:
        if not text:
            raise ValidationFailed(f"⚠️ {what} cannot be empty.{hint}")
        if len(text) > MAX_TASK_LENGTH:
            raise ValidationFailed(f"⚠️ {what} is too long (max {MAX_TASK_LENGTH} characters).{hint}")
        return text

    async def handle_create(self, chat_id: int, text: str) -> None:
        try:
            title = self.validate_text(text)
        except ValidationFailed as e:
            await self.reply(chat_id, e.user_message)
            return

        try:
            task = await self.tasks.create(title, TaskPriority.MEDIUM)
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, f"❌ Error creating task: {e.error}\n\nPlease try again.")
            return

        await self.send_task(chat_id, task, "✅ *Task created!*")

    async def handle_title_input(self, chat_id: int, text: str, record_id: str) -> None:
        hint = " Please try again or use /cancel to cancel."
        try:
            title = self.validate_text(text, what="Title", hint=hint)
        except ValidationFailed as e:
            await self.reply(chat_id, e.user_message)
            return

        try:
            task = await self.tasks.update_title(record_id, title)
        except ExternalCallFailed as e:
            # Stay in title mode so the next message retries
            self.report_failure(chat_id, e)
            await self.reply(chat_id, f"❌ Error updating task: {e.error}\n\n{hint.strip()}")
            return

        self.leave_mode(chat_id, trigger="title updated")
        await self.send_task(chat_id, task, "✅ *Task updated!*")

    async def handle_list(self, chat_id: int) -> None:
        try:
            tasks = await self.tasks.pending()
        except ExternalCallFailed as e:
            self.report_failure(chat_id, e)
            await self.reply(chat_id, "❌ Error fetching tasks. Please try again.")
            return

        if not tasks:
            await self.reply(chat_id, "📋 No pending tasks!")
            return

        await self.reply(chat_id, f"📋 *Pending Tasks* ({len(tasks)})\n", markdown=True)
        for task in tasks:
            await self.send_task(chat_id, task)

    async def send_task(self, chat_id: int, task: TaskRecord, header: Optional[str] = None) -> bool:
        text = rendering.format_task(task)
        if header:
            text = f"{header}\n\n{text}"
        return await self.reply(chat_id, text, keyboard=rendering.task_actions_keyboard(task.id), markdown=True)

    async def handle_callback(self, event: CallbackEvent, callback: CallbackData) -> None:
        chat_id = event.chat_id
        record_id = callback.argument

        if callback.action == CallbackAction.CANCEL:
            self.leave_mode(chat_id, trigger="cancel button")
            await self.answer(event, "Cancelled")
            await self.reply(chat_id, "❌ Cancelled.")

        elif callback.action == CallbackAction.DONE:
            await self.handle_mark_done(event, record_id)

        elif callback.action == CallbackAction.DELETE:
            await self.handle_delete(event, record_id)

        elif callback.action == CallbackAction.EDIT:
            self.enter_edit(chat_id, EditTarget(record_id=record_id, field=EditField.CHOICE), trigger="edit button")
            await self.answer(event)
            await self.reply(
                chat_id,
                "✏️ *What would you like to edit?*",
                keyboard=rendering.edit_options_keyboard(record_id),
                markdown=True
            )

        elif callback.action == CallbackAction.EDIT_TITLE:
            self.enter_edit(chat_id, EditTarget(record_id=record_id, field=EditField.TITLE), trigger="edit title button")
            await self.answer(event)
            await self.reply(chat_id, "📝 *Send new title for this task:*\n\nUse /cancel to cancel.", markdown=True)

        elif callback.action == CallbackAction.EDIT_PRIORITY:
            self.enter_edit(chat_id, EditTarget(record_id=record_id, field=EditField.PRIORITY), trigger="edit priority button")
            await self.answer(event)
            await self.reply(
                chat_id,
                "🎯 *Select new priority:*",
                keyboard=rendering.priority_keyboard(record_id),
                markdown=True
            )

        elif callback.action == CallbackAction.PRIORITY:
            await self.handle_priority_selection(event, record_id, callback.priority)

        else:
            await self.answer(event)

    async def handle_mark_done(self, event: CallbackEvent, record_id: str) -> None:
        try:
            await self.tasks.mark_done(record_id)
        except ExternalCallFailed as e:
            self.report_failure(event.chat_id, e)
            await self.answer(event, "Error")
            await self.reply(event.chat_id, f"❌ Error marking task as done: {e.error}\n\nPlease try again.")
            return

        await self.answer(event, "Marked as done!")
        await self.reply(event.chat_id, "✅ Task marked as done!")

    async def handle_delete(self, event: CallbackEvent, record_id: str) -> None:
        try:
            await self.tasks.archive(record_id)
        except ExternalCallFailed as e:
            self.report_failure(event.chat_id, e)
            await self.answer(event, "Error")
            await self.reply(event.chat_id, "❌ Error deleting task. Please try again.")
            return

        await self.answer(event, "Deleted!")
        await self.reply(event.chat_id, "🗑️ Task deleted successfully!")

    async def handle_priority_selection(self, event: CallbackEvent, record_id: str, priority: TaskPriority) -> None:
        try:
            task = await self.tasks.update_priority(record_id, priority)
        except ExternalCallFailed as e:
            self.report_failure(event.chat_id, e)
            await self.answer(event, "Error")
            await self.reply(event.chat_id, f"❌ Error updating priority: {e.error}\n\nPlease try again.")
            return

        self.leave_mode(event.chat_id, trigger="priority selected")
        await self.answer(event, "Priority updated!")
        await self.send_task(event.chat_id, task, "✅ *Priority updated!*")
