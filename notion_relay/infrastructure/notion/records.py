"""
Mapping between Notion pages and Link/Task records.

Page properties: Link {Title, URL, Category, Created, Nr};
Task {Title, Status, Priority, Created, Nr}.
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
from urllib.parse import urlparse
import structlog

from notion_relay.domain.errors import ExternalCallFailed
from notion_relay.domain.models.records import LinkRecord, TaskRecord, TaskPriority, TaskStatus
from notion_relay.domain.models.results import ClientResult
from .document_client import DocumentClient

logger = structlog.get_logger(__name__)

CATEGORY_PROPERTY = "Category"


def _title(properties: Dict[str, Any]) -> Optional[str]:
    fragments = (properties.get("Title") or {}).get("title") or []
    if fragments:
        return ((fragments[0] or {}).get("text") or {}).get("content") or None
    return None


def _select(properties: Dict[str, Any], name: str) -> Optional[str]:
    return ((properties.get(name) or {}).get("select") or {}).get("name")


def _created(properties: Dict[str, Any]) -> str:
    created = properties.get("Created") or {}
    if created.get("created_time"):
        return created["created_time"]
    return (created.get("date") or {}).get("start") or ""


def _number(properties: Dict[str, Any], name: str) -> Optional[int]:
    value = (properties.get(name) or {}).get("number")
    return int(value) if value is not None else None


def extract_link(page: Dict[str, Any]) -> LinkRecord:
    """Link view of a page, with defaults for anything missing"""

    properties = page.get("properties") or {}
    return LinkRecord(
        id=page.get("id", ""),
        title=_title(properties) or "Untitled",
        url=(properties.get("URL") or {}).get("url") or "",
        category=_select(properties, CATEGORY_PROPERTY) or "Other",
        created_at=_created(properties),
        sequence_number=_number(properties, "Nr")
    )


def extract_task(page: Dict[str, Any]) -> TaskRecord:
    """Task view of a page; unknown status or priority values fall back to defaults"""

    properties = page.get("properties") or {}
    try:
        status = TaskStatus(_select(properties, "Status") or TaskStatus.PENDING.value)
    except ValueError:
        status = TaskStatus.PENDING
    try:
        priority = TaskPriority(_select(properties, "Priority") or TaskPriority.MEDIUM.value)
    except ValueError:
        priority = TaskPriority.MEDIUM

    return TaskRecord(
        id=page.get("id", ""),
        title=_title(properties) or "Untitled",
        status=status,
        priority=priority,
        created_at=_created(properties),
        sequence_number=_number(properties, "Nr")
    )


def title_property(text: str) -> Dict[str, Any]:
    return {"title": [{"text": {"content": text}}]}


def select_property(name: str) -> Dict[str, Any]:
    return {"select": {"name": name}}


def date_property(moment: Optional[datetime] = None) -> Dict[str, Any]:
    moment = moment or datetime.now(timezone.utc)
    return {"date": {"start": moment.isoformat()}}


def _unwrap(result: ClientResult, operation: str) -> Any:
    if not result.ok:
        raise ExternalCallFailed(operation, result.error)
    return result.data


class LinkRepository:
    """Links database"""

    def __init__(self, client: DocumentClient):
        self.client = client

    async def is_duplicate(self, url: str) -> bool:
        result = await self.client.query(
            filter={"property": "URL", "url": {"equals": url}},
            limit=1
        )
        return len(_unwrap(result, "duplicate check")) > 0

    async def next_sequence_number(self) -> int:
        """Highest Nr plus one. Not atomic; concurrent saves can share a number"""

        result = await self.client.query(
            sorts=[{"property": "Nr", "direction": "descending"}],
            limit=1
        )
        if not result.ok:
            logger.warning("Could not read max Nr", error=result.error)
            return 1
        if not result.data:
            return 1
        return (_number(result.data[0].get("properties") or {}, "Nr") or 0) + 1

    async def save(self, url: str, category: str, title: Optional[str] = None) -> LinkRecord:
        """Persist a link; the title defaults to the URL's host"""

        page_title = title or urlparse(url).hostname or url
        properties = {
            "Title": title_property(page_title),
            "URL": {"url": url},
            CATEGORY_PROPERTY: select_property(category),
            "Created": date_property(),
            "Nr": {"number": await self.next_sequence_number()}
        }
        page = _unwrap(await self.client.create(properties), "saving to Notion")
        return extract_link(page)

    async def recent(self, limit: int = 10) -> List[LinkRecord]:
        result = await self.client.query(
            sorts=[{"property": "Created", "direction": "descending"}],
            limit=limit
        )
        return [extract_link(page) for page in _unwrap(result, "listing links")]

    async def search(self, keyword: str) -> List[LinkRecord]:
        """Links whose title or URL contains the keyword"""

        result = await self.client.query(
            filter={
                "or": [
                    {"property": "Title", "title": {"contains": keyword}},
                    {"property": "URL", "url": {"contains": keyword}}
                ]
            }
        )
        return [extract_link(page) for page in _unwrap(result, "searching")]

    async def archive(self, page_id: str) -> None:
        _unwrap(await self.client.archive(page_id), "deleting link")

    async def categories(self) -> List[str]:
        return _unwrap(await self.client.list_enum_options(CATEGORY_PROPERTY), "reading categories")

    async def add_category(self, name: str) -> str:
        """Add a category (idempotent); returns the stored name"""
        return _unwrap(await self.client.add_enum_option(CATEGORY_PROPERTY, name), "adding category")


class TaskRepository:
    """Tasks database"""

    def __init__(self, client: DocumentClient):
        self.client = client

    async def create(self, title: str, priority: TaskPriority = TaskPriority.MEDIUM) -> TaskRecord:
        properties = {
            "Title": title_property(title),
            "Status": select_property(TaskStatus.PENDING.value),
            "Priority": select_property(priority.value),
            "Created": date_property()
        }
        page = _unwrap(await self.client.create(properties), "creating task")
        return extract_task(page)

    async def pending(self) -> List[TaskRecord]:
        result = await self.client.query(
            filter={"property": "Status", "select": {"equals": TaskStatus.PENDING.value}},
            sorts=[{"property": "Created", "direction": "descending"}]
        )
        return [extract_task(page) for page in _unwrap(result, "listing tasks")]

    async def update_title(self, page_id: str, title: str) -> TaskRecord:
        page = _unwrap(await self.client.update(page_id, {"Title": title_property(title)}), "updating task")
        return extract_task(page)

    async def update_priority(self, page_id: str, priority: TaskPriority) -> TaskRecord:
        page = _unwrap(
            await self.client.update(page_id, {"Priority": select_property(priority.value)}),
            "updating priority"
        )
        return extract_task(page)

    async def mark_done(self, page_id: str) -> TaskRecord:
        page = _unwrap(
            await self.client.update(page_id, {"Status": select_property(TaskStatus.DONE.value)}),
            "marking task as done"
        )
        return extract_task(page)

    async def archive(self, page_id: str) -> None:
        _unwrap(await self.client.archive(page_id), "deleting task")
