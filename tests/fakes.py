"""In-memory stand-ins for Telegram and Notion used by the engine tests."""

from __future__ import annotations

import copy
import itertools
from typing import Any, Dict, List, Optional

from notion_relay.application.telegram.schema.updates import InlineKeyboardMarkup
from notion_relay.domain.models.results import ClientResult


class FakeMessaging:
    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.answers: List[Dict[str, Any]] = []
        self.edits: List[Dict[str, Any]] = []
        self.send_ok = True

    async def send_message(
        self,
        chat_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
        disable_preview: bool = False,
    ) -> bool:
        self.sent.append(
            {
                "chat_id": chat_id,
                "text": text,
                "keyboard": keyboard,
                "parse_mode": parse_mode,
                "disable_preview": disable_preview,
            }
        )
        return self.send_ok

    async def answer_callback(self, callback_id: str, text: Optional[str] = None) -> bool:
        self.answers.append({"callback_id": callback_id, "text": text})
        return True

    async def edit_message(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
    ) -> bool:
        self.edits.append({"chat_id": chat_id, "message_id": message_id, "text": text})
        return True

    @property
    def texts(self) -> List[str]:
        return [message["text"] for message in self.sent]

    @property
    def last(self) -> Dict[str, Any]:
        return self.sent[-1]


def _text_of(prop: Dict[str, Any]) -> str:
    if "title" in prop:
        return "".join(fragment["text"]["content"] for fragment in prop["title"])
    if "url" in prop:
        return prop["url"] or ""
    if "select" in prop:
        return (prop["select"] or {}).get("name", "")
    return ""


class FakeDocumentClient:
    """Notion-shaped pages with the handful of filters the repositories send"""

    def __init__(self, options: Optional[List[str]] = None) -> None:
        self.pages: Dict[str, Dict[str, Any]] = {}
        self.options: List[Dict[str, str]] = [{"name": name} for name in (options or [])]
        self.failing: set[str] = set()
        self.calls: List[str] = []
        self._ids = itertools.count(1)

    def fail(self, *operations: str) -> None:
        self.failing.update(operations)

    def _check(self, operation: str) -> Optional[ClientResult]:
        self.calls.append(operation)
        if operation in self.failing:
            return ClientResult.failure(f"{operation} unavailable")
        return None

    @property
    def active(self) -> List[Dict[str, Any]]:
        return [page for page in self.pages.values() if not page["archived"]]

    async def create(self, properties: Dict[str, Any]) -> ClientResult:
        failure = self._check("create")
        if failure:
            return failure
        page_id = f"page-{next(self._ids)}"
        page = {"id": page_id, "archived": False, "properties": copy.deepcopy(properties)}
        self.pages[page_id] = page
        return ClientResult.success(copy.deepcopy(page))

    async def query(self, filter=None, sorts=None, limit=None) -> ClientResult:
        failure = self._check("query")
        if failure:
            return failure
        pages = [page for page in self.active if self._matches(page, filter)]
        for sort in reversed(sorts or []):
            pages.sort(
                key=lambda page: self._sort_key(page, sort["property"]),
                reverse=sort.get("direction") == "descending",
            )
        if limit:
            pages = pages[:limit]
        return ClientResult.success(copy.deepcopy(pages))

    async def update(self, page_id: str, properties: Dict[str, Any]) -> ClientResult:
        failure = self._check("update")
        if failure:
            return failure
        page = self.pages.get(page_id)
        if page is None or page["archived"]:
            return ClientResult.failure("Could not find page")
        page["properties"].update(copy.deepcopy(properties))
        return ClientResult.success(copy.deepcopy(page))

    async def archive(self, page_id: str) -> ClientResult:
        failure = self._check("archive")
        if failure:
            return failure
        page = self.pages.get(page_id)
        if page is None:
            return ClientResult.failure("Could not find page")
        page["archived"] = True
        return ClientResult.success(page_id)

    async def list_enum_options(self, property_name: str) -> ClientResult:
        failure = self._check("list_enum_options")
        if failure:
            return failure
        return ClientResult.success([option["name"] for option in self.options])

    async def add_enum_option(self, property_name: str, name: str) -> ClientResult:
        failure = self._check("add_enum_option")
        if failure:
            return failure
        for option in self.options:
            if option["name"].lower() == name.lower():
                return ClientResult.success(option["name"])
        self.options.append({"name": name})
        return ClientResult.success(name)

    def _matches(self, page: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
        if not filter:
            return True
        if "or" in filter:
            return any(self._matches(page, sub) for sub in filter["or"])
        prop = page["properties"].get(filter["property"], {})
        value = _text_of(prop)
        condition = next(v for k, v in filter.items() if k != "property")
        if "equals" in condition:
            return value == condition["equals"]
        if "contains" in condition:
            return condition["contains"].lower() in value.lower()
        return False

    @staticmethod
    def _sort_key(page: Dict[str, Any], name: str):
        prop = page["properties"].get(name, {})
        if "number" in prop:
            return prop["number"] or 0
        if "date" in prop:
            return prop["date"]["start"]
        return _text_of(prop)
