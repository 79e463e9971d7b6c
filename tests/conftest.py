"""Shared fixtures: fake clients and engines wired to them."""

from __future__ import annotations

import pytest

from notion_relay.application.telegram.schema.updates import CallbackEvent, MessageEvent
from notion_relay.domain.conversation.link_engine import LinkConversationEngine
from notion_relay.domain.conversation.task_engine import TaskConversationEngine
from notion_relay.domain.session import InMemoryKeyValueStore, RateLimiter, SessionStore
from notion_relay.infrastructure.notion.records import LinkRepository, TaskRepository
from notion_relay.infrastructure.observability.logging import metrics
from notion_relay.infrastructure.security.allow_list import AllowList

from tests.fakes import FakeDocumentClient, FakeMessaging

CHAT_ID = 100
USER_ID = 42


def message(text: str, chat_id: int = CHAT_ID, user_id: int | None = USER_ID) -> MessageEvent:
    return MessageEvent(chat_id=chat_id, user_id=user_id, text=text.strip())


def button(data: str, chat_id: int = CHAT_ID, user_id: int = USER_ID, message_id: int | None = 7) -> CallbackEvent:
    return CallbackEvent(callback_id="cb-1", chat_id=chat_id, user_id=user_id, data=data, message_id=message_id)


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def messaging() -> FakeMessaging:
    return FakeMessaging()


@pytest.fixture
def documents() -> FakeDocumentClient:
    return FakeDocumentClient(options=["Work", "Study"])


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore(InMemoryKeyValueStore())


@pytest.fixture
def link_engine(messaging, documents, sessions) -> LinkConversationEngine:
    return LinkConversationEngine(
        messaging=messaging,
        links=LinkRepository(documents),
        sessions=sessions,
        rate_limiter=RateLimiter(max_requests=100),
        allow_list=AllowList([USER_ID]),
    )


@pytest.fixture
def task_engine(messaging, documents, sessions) -> TaskConversationEngine:
    return TaskConversationEngine(
        messaging=messaging,
        tasks=TaskRepository(documents),
        sessions=sessions,
        rate_limiter=RateLimiter(max_requests=100),
        allow_list=AllowList([USER_ID]),
    )
