from typing import Any, Dict, List, Optional
import httpx
import structlog

from notion_relay.application.telegram.messaging_client import TelegramClient
from notion_relay.domain.conversation.link_engine import LinkConversationEngine
from notion_relay.domain.conversation.task_engine import TaskConversationEngine
from notion_relay.domain.session import InMemoryKeyValueStore, SessionStore, RateLimiter
from notion_relay.infrastructure.config.settings import Settings
from notion_relay.infrastructure.notion.document_client import NotionDocumentClient
from notion_relay.infrastructure.notion.records import LinkRepository, TaskRepository
from notion_relay.infrastructure.security.allow_list import AllowList

logger = structlog.get_logger(__name__)


class RelayRuntime:
    """Engines of both bots and the clients they own"""

    def __init__(
        self,
        link_engine: LinkConversationEngine,
        task_engine: TaskConversationEngine,
        closeables: Optional[List[Any]] = None
    ):
        self.link_engine = link_engine
        self.task_engine = task_engine
        self.closeables = closeables or []

    def stats(self) -> Dict[str, Any]:
        return {
            "link": {
                **self.link_engine.sessions.stats(),
                "active_rate_windows": self.link_engine.rate_limiter.tracked_users()
            },
            "todo": {
                **self.task_engine.sessions.stats(),
                "active_rate_windows": self.task_engine.rate_limiter.tracked_users()
            }
        }

    async def close(self):
        for closeable in self.closeables:
            try:
                await closeable.aclose()
            except Exception as e:
                logger.error("Error closing client", error=str(e))


def build_runtime(settings: Settings) -> RelayRuntime:
    """Wire both bots from configuration. Each bot gets its own state"""

    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    allow_list = AllowList(settings.allowed_user_ids)

    def state():
        kv = InMemoryKeyValueStore()
        return (
            SessionStore(kv, ttl_seconds=settings.session_ttl_seconds),
            RateLimiter(
                kv,
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds
            )
        )

    link_sessions, link_limiter = state()
    link_engine = LinkConversationEngine(
        messaging=TelegramClient(settings.bot_token, http_client=http_client),
        links=LinkRepository(NotionDocumentClient(
            settings.notion_secret, settings.notion_db_id, http_client=http_client
        )),
        sessions=link_sessions,
        rate_limiter=link_limiter,
        allow_list=allow_list,
        default_categories=settings.default_categories
    )

    task_sessions, task_limiter = state()
    task_engine = TaskConversationEngine(
        messaging=TelegramClient(settings.bot_token_todo, http_client=http_client),
        tasks=TaskRepository(NotionDocumentClient(
            settings.notion_secret, settings.notion_todo_db_id, http_client=http_client
        )),
        sessions=task_sessions,
        rate_limiter=task_limiter,
        allow_list=allow_list
    )

    return RelayRuntime(link_engine, task_engine, closeables=[http_client])
