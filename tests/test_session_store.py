from datetime import datetime, timedelta

import pytest

from notion_relay.domain.models.records import EditField, EditTarget, Mode, Session
from notion_relay.domain.session import InMemoryKeyValueStore, SessionStore


class Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now


def test_new_chat_starts_in_normal_mode() -> None:
    store = SessionStore()

    session = store.get_session(1)

    assert session.mode == Mode.NORMAL
    assert session.pending_url is None
    assert session.edit_target is None


def test_pending_url_set_and_clear() -> None:
    store = SessionStore()

    store.set_pending_url(1, "https://example.com")
    assert store.get_pending_url(1) == "https://example.com"
    assert store.get_pending_url(2) is None

    store.clear_pending_url(1)
    assert store.get_pending_url(1) is None


def test_setting_a_mode_replaces_the_previous_one() -> None:
    store = SessionStore()

    store.set_edit_target(1, EditTarget(record_id="abc", field=EditField.TITLE))
    store.set_mode(1, Mode.AWAITING_SEARCH_KEYWORD)

    session = store.get_session(1)
    assert session.mode == Mode.AWAITING_SEARCH_KEYWORD
    assert session.edit_target is None


def test_clearing_mode_keeps_pending_url() -> None:
    store = SessionStore()
    store.set_pending_url(1, "https://example.com")
    store.set_mode(1, Mode.AWAITING_CATEGORY_TEXT)

    store.clear_mode(1)

    assert store.get_mode(1) == Mode.NORMAL
    assert store.get_pending_url(1) == "https://example.com"


def test_editing_mode_requires_edit_target() -> None:
    store = SessionStore()

    with pytest.raises(ValueError):
        store.set_mode(1, Mode.EDITING)

    with pytest.raises(ValueError):
        Session(chat_id=1, mode=Mode.EDITING)


def test_edit_target_round_trips_through_store() -> None:
    store = SessionStore()
    target = EditTarget(record_id="page-9", field=EditField.PRIORITY)

    store.set_edit_target(1, target)

    assert store.get_mode(1) == Mode.EDITING
    assert store.get_edit_target(1) == target


def test_entries_expire_after_ttl() -> None:
    clock = Clock()
    store = SessionStore(InMemoryKeyValueStore(now=clock), ttl_seconds=60)
    store.set_pending_url(1, "https://example.com")
    store.set_mode(1, Mode.AWAITING_CATEGORY_TEXT)

    clock.now += timedelta(seconds=61)

    assert store.get_pending_url(1) is None
    assert store.get_mode(1) == Mode.NORMAL


def test_malformed_mode_state_falls_back_to_normal() -> None:
    kv = InMemoryKeyValueStore()
    store = SessionStore(kv)
    kv.set("mode", "1", {"mode": "bogus"})

    assert store.get_mode(1) == Mode.NORMAL
    assert kv.get("mode", "1") is None


def test_stats_counts_live_entries() -> None:
    store = SessionStore()
    store.set_pending_url(1, "https://a.example")
    store.set_pending_url(2, "https://b.example")
    store.set_mode(2, Mode.AWAITING_SEARCH_KEYWORD)

    assert store.stats() == {
        "pending_urls": 2,
        "modes": {"awaiting_search_keyword": 1},
    }


def test_clear_expired_removes_only_expired_entries() -> None:
    clock = Clock()
    kv = InMemoryKeyValueStore(now=clock)
    kv.set("ns", "short", 1, ttl=10)
    kv.set("ns", "forever", 2)

    clock.now += timedelta(seconds=11)

    assert kv.clear_expired() == 1
    assert kv.keys("ns") == ["forever"]


def test_writes_sweep_expired_entries_that_are_never_read() -> None:
    clock = Clock()
    kv = InMemoryKeyValueStore(now=clock, sweep_every=3)
    store = SessionStore(kv, ttl_seconds=60)
    store.set_pending_url(1, "https://a.example")
    store.set_mode(2, Mode.AWAITING_SEARCH_KEYWORD)

    clock.now += timedelta(seconds=61)
    store.set_pending_url(3, "https://c.example")

    assert set(kv.cache) == {("pending_url", "3")}
