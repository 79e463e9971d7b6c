from typing import Dict, Any, Optional
import structlog

from notion_relay.domain.models.records import Session, Mode, EditTarget
from .kv_store import KeyValueStore, InMemoryKeyValueStore

logger = structlog.get_logger(__name__)

PENDING_URL_NAMESPACE = "pending_url"
MODE_NAMESPACE = "mode"


class SessionStore:
    """Per-chat conversation state on top of a key-value store.

    The pending URL and the mode are kept under separate namespaces so that
    clearing one never touches the other. Both expire after ``ttl_seconds``.
    """

    def __init__(self, kv: Optional[KeyValueStore] = None, ttl_seconds: int = 3600):
        self.kv = kv if kv is not None else InMemoryKeyValueStore()
        self.ttl_seconds = ttl_seconds

    def get_session(self, chat_id: int) -> Session:
        """Assemble the full session view for a chat"""

        state = self._mode_state(chat_id)
        return Session(
            chat_id=chat_id,
            pending_url=self.get_pending_url(chat_id),
            mode=state["mode"],
            edit_target=state["edit_target"]
        )

    # Pending URL

    def get_pending_url(self, chat_id: int) -> Optional[str]:
        return self.kv.get(PENDING_URL_NAMESPACE, str(chat_id))

    def set_pending_url(self, chat_id: int, url: str) -> None:
        self.kv.set(PENDING_URL_NAMESPACE, str(chat_id), url, ttl=self.ttl_seconds)

    def clear_pending_url(self, chat_id: int) -> None:
        self.kv.delete(PENDING_URL_NAMESPACE, str(chat_id))

    # Mode

    def get_mode(self, chat_id: int) -> Mode:
        return self._mode_state(chat_id)["mode"]

    def set_mode(self, chat_id: int, mode: Mode) -> None:
        """Enter a mode, replacing whatever mode was active"""

        if mode == Mode.EDITING:
            raise ValueError("Use set_edit_target to enter editing mode")
        if mode == Mode.NORMAL:
            self.clear_mode(chat_id)
            return

        self.kv.set(MODE_NAMESPACE, str(chat_id), {"mode": mode.value}, ttl=self.ttl_seconds)

    def clear_mode(self, chat_id: int) -> None:
        self.kv.delete(MODE_NAMESPACE, str(chat_id))

    def get_edit_target(self, chat_id: int) -> Optional[EditTarget]:
        return self._mode_state(chat_id)["edit_target"]

    def set_edit_target(self, chat_id: int, target: EditTarget) -> None:
        self.kv.set(
            MODE_NAMESPACE,
            str(chat_id),
            {"mode": Mode.EDITING.value, "edit_target": target.model_dump(mode="json")},
            ttl=self.ttl_seconds
        )

    def reset(self, chat_id: int) -> None:
        """Drop pending URL and mode for a chat"""

        self.clear_pending_url(chat_id)
        self.clear_mode(chat_id)

    def stats(self) -> Dict[str, Any]:
        """Counts of live entries, for debugging"""

        modes: Dict[str, int] = {}
        for key in self.kv.keys(MODE_NAMESPACE):
            state = self.kv.get(MODE_NAMESPACE, key)
            if state:
                modes[state["mode"]] = modes.get(state["mode"], 0) + 1

        return {
            "pending_urls": len(self.kv.keys(PENDING_URL_NAMESPACE)),
            "modes": modes
        }

    def _mode_state(self, chat_id: int) -> Dict[str, Any]:
        raw = self.kv.get(MODE_NAMESPACE, str(chat_id))
        if not raw:
            return {"mode": Mode.NORMAL, "edit_target": None}

        try:
            mode = Mode(raw["mode"])
            target = raw.get("edit_target")
            edit_target = EditTarget(**target) if target else None
        except (KeyError, TypeError, ValueError):
            logger.warning("Discarding malformed mode state", chat_id=chat_id, state=raw)
            self.clear_mode(chat_id)
            return {"mode": Mode.NORMAL, "edit_target": None}

        if (mode == Mode.EDITING) != (edit_target is not None):
            self.clear_mode(chat_id)
            return {"mode": Mode.NORMAL, "edit_target": None}

        return {"mode": mode, "edit_target": edit_target}
