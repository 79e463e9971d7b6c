from typing import Callable, List, Optional
import time

from .kv_store import KeyValueStore, InMemoryKeyValueStore

RATE_NAMESPACE = "rate"


class RateLimiter:
    """Sliding-window request counter per user.

    ``is_rate_limited`` and ``record_request`` are separate calls, so two
    concurrent invocations for the same user may both be admitted.
    """

    def __init__(
        self,
        kv: Optional[KeyValueStore] = None,
        max_requests: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time
    ):
        self.kv = kv if kv is not None else InMemoryKeyValueStore()
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    def is_rate_limited(self, user_id: int) -> bool:
        """True when the user already used the whole window"""
        return len(self._prune(user_id)) >= self.max_requests

    def record_request(self, user_id: int) -> None:
        timestamps = self._prune(user_id)
        timestamps.append(self._clock())
        self.kv.set(RATE_NAMESPACE, str(user_id), timestamps, ttl=self.window_seconds)

    def remaining(self, user_id: int) -> int:
        return max(0, self.max_requests - len(self._prune(user_id)))

    def reset(self, user_id: int) -> None:
        self.kv.delete(RATE_NAMESPACE, str(user_id))

    def tracked_users(self) -> int:
        """Users with requests inside the current window"""
        return len(self.kv.keys(RATE_NAMESPACE))

    def _prune(self, user_id: int) -> List[float]:
        now = self._clock()
        timestamps = self.kv.get(RATE_NAMESPACE, str(user_id)) or []
        valid = [ts for ts in timestamps if now - ts < self.window_seconds]
        if not valid:
            self.kv.delete(RATE_NAMESPACE, str(user_id))
        elif len(valid) != len(timestamps):
            self.kv.set(RATE_NAMESPACE, str(user_id), valid, ttl=self.window_seconds)
        return valid
