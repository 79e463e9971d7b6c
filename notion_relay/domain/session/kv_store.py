from typing import Dict, Any, List, Optional, Protocol, Tuple
from datetime import datetime, timedelta


class KeyValueStore(Protocol):
    """Namespaced key-value storage backing sessions and rate windows"""

    def get(self, namespace: str, key: str) -> Optional[Any]: ...

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[float] = None) -> None: ...

    def delete(self, namespace: str, key: str) -> bool: ...

    def keys(self, namespace: str) -> List[str]: ...


class InMemoryKeyValueStore:
    """In-memory store with optional TTL per entry.

    Lives as long as the process. Nothing is shared between processes.
    Expired entries are dropped when read and swept every ``sweep_every``
    writes, so keys that are never read again do not pile up.
    """

    def __init__(self, now=datetime.utcnow, sweep_every: int = 256):
        self.cache: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._now = now
        self.sweep_every = sweep_every
        self._writes = 0

    def set(self, namespace: str, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Set a value, expiring after ttl seconds when given"""

        self._writes += 1
        if self._writes % self.sweep_every == 0:
            self.clear_expired()

        expires_at = self._now() + timedelta(seconds=ttl) if ttl else None
        self.cache[(namespace, key)] = {
            "value": value,
            "expires_at": expires_at
        }

    def get(self, namespace: str, key: str) -> Optional[Any]:
        """Get value if present and not expired"""

        entry = self.cache.get((namespace, key))
        if entry is None:
            return None

        if self._is_expired(entry):
            del self.cache[(namespace, key)]
            return None

        return entry["value"]

    def delete(self, namespace: str, key: str) -> bool:
        """Delete a key, returning whether it existed"""

        return self.cache.pop((namespace, key), None) is not None

    def keys(self, namespace: str) -> List[str]:
        """Live keys of a namespace"""

        return [
            key for (ns, key), entry in self.cache.items()
            if ns == namespace and not self._is_expired(entry)
        ]

    def clear_expired(self) -> int:
        """Clear expired entries and return count"""

        expired_keys = [
            cache_key for cache_key, entry in self.cache.items()
            if self._is_expired(entry)
        ]

        for cache_key in expired_keys:
            del self.cache[cache_key]

        return len(expired_keys)

    def _is_expired(self, entry: Dict[str, Any]) -> bool:
        expires_at = entry["expires_at"]
        return expires_at is not None and self._now() > expires_at
