# Session = everything the bot must remember between two updates of a chat:
# the URL waiting for a category, and which input the next message answers
# (new category name, search keyword, task title).
#
# Rate windows are kept per user, sessions per chat. All of it is volatile;
# the document store is the source of truth.

from .kv_store import KeyValueStore, InMemoryKeyValueStore
from .session_store import SessionStore
from .rate_limiter import RateLimiter

__all__ = ["KeyValueStore", "InMemoryKeyValueStore", "SessionStore", "RateLimiter"]
