"""
Notion database client.

Every call returns a ClientResult; network errors and API errors never
escape as exceptions. Query results are eventually consistent: a page that
was just created may not show up in the next query.
"""

from typing import Dict, Any, List, Optional, Protocol
import time
import httpx
import structlog

from notion_relay.domain.models.results import ClientResult
from notion_relay.infrastructure.observability.logging import metrics

logger = structlog.get_logger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"


class DocumentClient(Protocol):
    """CRUD surface of the structured document store"""

    async def create(self, properties: Dict[str, Any]) -> ClientResult: ...

    async def query(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None
    ) -> ClientResult: ...

    async def update(self, page_id: str, properties: Dict[str, Any]) -> ClientResult: ...

    async def archive(self, page_id: str) -> ClientResult: ...

    async def list_enum_options(self, property_name: str) -> ClientResult: ...

    async def add_enum_option(self, property_name: str, name: str) -> ClientResult: ...


class NotionDocumentClient:
    """Operates on the pages of a single Notion database"""

    def __init__(
        self,
        secret: str,
        database_id: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        base_url: str = NOTION_API_BASE
    ):
        self.database_id = database_id
        self.base_url = base_url
        self.headers = {
            "Authorization": f"Bearer {secret}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json"
        }
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def create(self, properties: Dict[str, Any]) -> ClientResult:
        """Create a page; data is the page object"""

        return await self._request(
            "POST",
            "/pages",
            "create",
            json={"parent": {"database_id": self.database_id}, "properties": properties}
        )

    async def query(
        self,
        filter: Optional[Dict[str, Any]] = None,
        sorts: Optional[List[Dict[str, Any]]] = None,
        limit: Optional[int] = None
    ) -> ClientResult:
        """Query pages; data is the list of page objects"""

        body: Dict[str, Any] = {}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        if limit:
            body["page_size"] = limit

        result = await self._request("POST", f"/databases/{self.database_id}/query", "query", json=body)
        if not result.ok:
            return result
        return ClientResult.success(result.data.get("results", []))

    async def update(self, page_id: str, properties: Dict[str, Any]) -> ClientResult:
        """Update page properties; data is the updated page"""

        return await self._request("PATCH", f"/pages/{page_id}", "update", json={"properties": properties})

    async def archive(self, page_id: str) -> ClientResult:
        """Soft-delete a page"""

        result = await self._request("PATCH", f"/pages/{page_id}", "archive", json={"archived": True})
        if not result.ok:
            return result
        return ClientResult.success(page_id)

    async def list_enum_options(self, property_name: str) -> ClientResult:
        """Names of a select property's options, in database order"""

        result = await self._select_options(property_name)
        if not result.ok:
            return result
        return ClientResult.success([option["name"] for option in result.data])

    async def add_enum_option(self, property_name: str, name: str) -> ClientResult:
        """Add a select option unless one matches case-insensitively.

        data is the option name as stored, which keeps the casing of the
        first insertion.
        """

        result = await self._select_options(property_name)
        if not result.ok:
            return result

        options = result.data
        for option in options:
            if option["name"].lower() == name.lower():
                return ClientResult.success(option["name"])

        # Existing options must keep their ids
        updated = [
            {key: option[key] for key in ("id", "name", "color") if key in option}
            for option in options
        ]
        updated.append({"name": name})

        update = await self._request(
            "PATCH",
            f"/databases/{self.database_id}",
            "add_enum_option",
            json={"properties": {property_name: {"select": {"options": updated}}}}
        )
        if not update.ok:
            return update

        logger.info("Added select option", property=property_name, option=name)
        return ClientResult.success(name)

    async def close(self):
        await self._client.aclose()

    async def _select_options(self, property_name: str) -> ClientResult:
        result = await self._request("GET", f"/databases/{self.database_id}", "retrieve_database")
        if not result.ok:
            return result

        prop = result.data.get("properties", {}).get(property_name)
        if not prop or prop.get("type") != "select":
            logger.error("Property is not a select", property=property_name)
            return ClientResult.failure(f"{property_name} property is not a select type")

        return ClientResult.success((prop.get("select") or {}).get("options") or [])

    async def _request(self, method: str, path: str, operation: str, json: Optional[Dict[str, Any]] = None) -> ClientResult:
        started = time.perf_counter()
        try:
            response = await self._client.request(method, f"{self.base_url}{path}", headers=self.headers, json=json)
        except httpx.HTTPError as e:
            logger.error("Notion request failed", operation=operation, error=str(e))
            return ClientResult.failure(str(e))
        finally:
            metrics.call_latency(f"notion.{operation}", (time.perf_counter() - started) * 1000)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            message = data.get("message") if isinstance(data, dict) else None
            message = message or f"HTTP {response.status_code}"
            logger.warning("Notion rejected request", operation=operation, status=response.status_code, error=message)
            return ClientResult.failure(message)

        return ClientResult.success(data)
