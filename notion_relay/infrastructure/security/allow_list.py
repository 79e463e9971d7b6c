"""
Static allow-list of Telegram user ids.

An empty list admits every user.
"""

from typing import Iterable, Optional
import structlog

logger = structlog.get_logger(__name__)


class AllowList:
    """Authorizes users against a fixed set of ids"""

    def __init__(self, user_ids: Optional[Iterable[int]] = None):
        self.user_ids = frozenset(user_ids or ())

    def is_authorized(self, user_id: Optional[int]) -> bool:
        if user_id is None:
            return False
        if not self.user_ids:
            return True

        allowed = user_id in self.user_ids
        if not allowed:
            logger.warning("Rejected user outside allow-list", user_id=user_id)
        return allowed
