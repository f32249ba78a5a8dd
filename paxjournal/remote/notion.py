"""Notion-backed remote repositories.

Talks to the Notion REST API directly over httpx. Column names are taken from
config so the adapters work against databases with renamed properties.
"""

import asyncio
import logging
from typing import Any

import httpx

from ..config import LogsColumnsConfig, NotionConfig, TodosColumnsConfig
from ..domain import (
    STATUS_DONE,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    TODO_CATEGORIES,
    TODO_PRIORITIES,
    DailyLog,
    LogContent,
    Todo,
    create_log_content,
    create_todo,
)
from ..errors import RemoteAPIError, RemoteUnavailableError
from .base import RemoteLogs, RemoteTodos

logger = logging.getLogger(__name__)

# 409 is Notion's conflict_error, which it documents as safe to retry
RETRYABLE_STATUS = {409, 429, 500, 502, 503, 504}


class NotionClient:
    """Thin async client for the Notion REST API.

    Retries rate limits, server errors and network failures with
    exponential backoff. Anything else the API rejects raises
    RemoteAPIError immediately.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the Notion client.

        Args:
            api_key: Integration token.
            base_url: API root, without trailing slash.
            notion_version: Value of the Notion-Version header.
            timeout: Request timeout in seconds.
            max_retries: Attempts per request before giving up.
            backoff_seconds: First retry delay; doubles on each attempt.
            transport: Optional httpx transport, used by tests.
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.notion_version = notion_version
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: NotionConfig) -> "NotionClient":
        return cls(
            api_key=config.api_key,
            base_url=config.base_url,
            notion_version=config.notion_version,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Notion-Version": self.notion_version,
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, path: str, json_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Make an API request with exponential backoff retry.

        Raises:
            RemoteAPIError: The API rejected the request.
            RemoteUnavailableError: Retries were exhausted.
        """
        client = await self._get_client()
        backoff = self.backoff_seconds
        last_error = ""

        for attempt in range(self.max_retries):
            delay = backoff
            try:
                response = await client.request(method, path, json=json_data)

                if response.status_code < 300:
                    return response.json()

                if response.status_code not in RETRYABLE_STATUS:
                    raise RemoteAPIError(response.status_code, _error_message(response))

                last_error = f"HTTP {response.status_code}"
                delay = _retry_after(response, backoff)
                logger.warning(
                    f"Notion returned {response.status_code} for {method} {path}, "
                    f"attempt {attempt + 1}/{self.max_retries}"
                )

            except httpx.ConnectError as e:
                last_error = f"Connection failed: {e}"
                logger.warning(f"Connection failed, attempt {attempt + 1}/{self.max_retries}")
            except httpx.TimeoutException:
                last_error = "Request timeout"
                logger.warning(f"Request timeout, attempt {attempt + 1}/{self.max_retries}")

            if attempt < self.max_retries - 1:
                await asyncio.sleep(delay)
                backoff *= 2

        raise RemoteUnavailableError(
            f"{method} {path} failed after {self.max_retries} attempts: {last_error}"
        )

    async def query_database(
        self,
        database_id: str,
        filter: dict[str, Any] | None = None,
        sorts: list[dict[str, Any]] | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query a database, following pagination cursors.

        Args:
            database_id: Database to query.
            filter: Notion filter object.
            sorts: Notion sort objects.
            limit: Stop after this many results.

        Returns:
            Result objects in the order Notion returned them.
        """
        results: list[dict[str, Any]] = []
        cursor = None

        while True:
            body: dict[str, Any] = {"page_size": min(limit, 100) if limit else 100}
            if filter:
                body["filter"] = filter
            if sorts:
                body["sorts"] = sorts
            if cursor:
                body["start_cursor"] = cursor

            data = await self._request("POST", f"/databases/{database_id}/query", body)
            results.extend(data.get("results", []))

            if limit and len(results) >= limit:
                return results[:limit]
            if not data.get("has_more") or not data.get("next_cursor"):
                return results
            cursor = data["next_cursor"]

    async def create_page(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/pages",
            {"parent": {"database_id": database_id}, "properties": properties},
        )

    async def update_page(
        self,
        page_id: str,
        properties: dict[str, Any] | None = None,
        archived: bool | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if properties:
            body["properties"] = properties
        if archived is not None:
            body["archived"] = archived
        return await self._request("PATCH", f"/pages/{page_id}", body)

    async def retrieve_page(self, page_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/pages/{page_id}")


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text


def _retry_after(response: httpx.Response, default: float) -> float:
    value = response.headers.get("Retry-After")
    if value is None:
        return default
    try:
        return max(float(value), 0.0)
    except ValueError:
        return default


# ==================== Property helpers ====================


def _plain_text(items: list[dict[str, Any]] | None) -> str:
    return "".join(item.get("plain_text", "") for item in items or [])


def _extract_title(prop: dict[str, Any] | None) -> str:
    return _plain_text((prop or {}).get("title"))


def _extract_rich_text(prop: dict[str, Any] | None) -> str:
    return _plain_text((prop or {}).get("rich_text"))


def _extract_date(prop: dict[str, Any] | None) -> str | None:
    start = ((prop or {}).get("date") or {}).get("start")
    return start[:10] if start else None


def _extract_select(prop: dict[str, Any] | None, kind: str = "select") -> str | None:
    return ((prop or {}).get(kind) or {}).get("name")


def _extract_number(prop: dict[str, Any] | None) -> float | None:
    return (prop or {}).get("number")


def _extract_checkbox(prop: dict[str, Any] | None) -> bool:
    return bool((prop or {}).get("checkbox", False))


def _title_prop(text: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": text or "Untitled"}}]}


def _rich_text_prop(text: str | None) -> dict[str, Any]:
    return {"rich_text": [{"text": {"content": text}}] if text else []}


def _select_prop(value: str | None) -> dict[str, Any]:
    return {"select": {"name": value} if value else None}


def _date_prop(value: str | None) -> dict[str, Any]:
    return {"date": {"start": value} if value else None}


def _allowed(value: str | None, choices: tuple[str, ...], page_id: str) -> str | None:
    if value is not None and value not in choices:
        logger.debug(f"Ignoring unknown option {value!r} on page {page_id}")
        return None
    return value


# ==================== Todos ====================


class NotionTodosAdapter(RemoteTodos):
    """Todos stored as pages in a Notion database.

    The "done" column is either a checkbox or a select/status property with
    configured option names for done and open.
    """

    def __init__(self, client: NotionClient, database_id: str, columns: TodosColumnsConfig):
        self.client = client
        self.database_id = database_id
        self.columns = columns

    def _done_prop(self, status: str) -> dict[str, Any]:
        c = self.columns
        if c.done_type == "checkbox":
            return {"checkbox": status == STATUS_DONE}
        if status == STATUS_DONE:
            name = c.done_value
        elif status == STATUS_IN_PROGRESS:
            name = STATUS_IN_PROGRESS
        else:
            name = c.open_value
        return {c.done_type: {"name": name}}

    def _status_from(self, prop: dict[str, Any] | None) -> str:
        c = self.columns
        if c.done_type == "checkbox":
            return STATUS_DONE if _extract_checkbox(prop) else STATUS_OPEN
        name = _extract_select(prop, c.done_type)
        if name == c.done_value:
            return STATUS_DONE
        if name == STATUS_IN_PROGRESS:
            return STATUS_IN_PROGRESS
        return STATUS_OPEN

    def _page_to_todo(self, page: dict[str, Any]) -> Todo | None:
        if page.get("object") != "page" or page.get("archived"):
            return None
        c = self.columns
        props = page.get("properties", {})
        page_id = page["id"]
        return create_todo(
            title=_extract_title(props.get(c.title)) or "Untitled",
            due_date=_extract_date(props.get(c.due_date)),
            id=page_id,
            status=self._status_from(props.get(c.done)),
            category=_allowed(_extract_select(props.get(c.category)), TODO_CATEGORIES, page_id),
            notes=_extract_rich_text(props.get(c.notes)) or None,
            priority=_allowed(_extract_select(props.get(c.priority)), TODO_PRIORITIES, page_id),
        )

    async def _query(self, filter: dict[str, Any] | None = None) -> list[Todo]:
        pages = await self.client.query_database(
            self.database_id,
            filter=filter,
            sorts=[{"property": self.columns.due_date, "direction": "ascending"}],
        )
        todos = [self._page_to_todo(page) for page in pages]
        return [t for t in todos if t is not None]

    async def list_all(self) -> list[Todo]:
        return await self._query()

    async def list_open(self) -> list[Todo]:
        c = self.columns
        if c.done_type == "checkbox":
            filter = {"property": c.done, "checkbox": {"equals": False}}
        else:
            filter = {"property": c.done, c.done_type: {"does_not_equal": c.done_value}}
        return await self._query(filter)

    async def add(self, todo: Todo) -> Todo:
        c = self.columns
        props: dict[str, Any] = {
            c.title: _title_prop(todo.title),
            c.done: self._done_prop(todo.status),
        }
        if todo.due_date:
            props[c.due_date] = _date_prop(todo.due_date)
        if todo.category is not None:
            props[c.category] = _select_prop(todo.category)
        if todo.notes is not None:
            props[c.notes] = _rich_text_prop(todo.notes)
        if todo.priority is not None:
            props[c.priority] = _select_prop(todo.priority)

        page = await self.client.create_page(self.database_id, props)
        logger.debug(f"Created Notion page {page['id']} for todo {todo.id}")
        return create_todo(
            title=todo.title,
            due_date=todo.due_date,
            id=page["id"],
            status=todo.status,
            category=todo.category,
            notes=todo.notes,
            priority=todo.priority,
        )

    async def update(self, todo_id: str, patch: dict[str, Any]) -> None:
        c = self.columns
        props: dict[str, Any] = {}
        if patch.get("title") is not None:
            props[c.title] = _title_prop(patch["title"])
        if "due_date" in patch:
            props[c.due_date] = _date_prop(patch["due_date"])
        if patch.get("status") is not None:
            props[c.done] = self._done_prop(patch["status"])
        if patch.get("category") is not None:
            props[c.category] = _select_prop(patch["category"])
        if patch.get("notes") is not None:
            props[c.notes] = _rich_text_prop(patch["notes"])
        if patch.get("priority") is not None:
            props[c.priority] = _select_prop(patch["priority"])
        if not props:
            return
        await self.client.update_page(todo_id, properties=props)

    async def complete(self, todo_id: str) -> None:
        await self.client.update_page(
            todo_id, properties={self.columns.done: self._done_prop(STATUS_DONE)}
        )

    async def delete(self, todo_id: str) -> None:
        await self.client.update_page(todo_id, archived=True)

    async def fetch_last_edited_time(self, todo_id: str) -> str | None:
        page = await self.client.retrieve_page(todo_id)
        return page.get("last_edited_time")


# ==================== Daily logs ====================


class NotionLogsAdapter(RemoteLogs):
    """Daily logs stored as pages in a Notion database, one per date."""

    def __init__(self, client: NotionClient, database_id: str, columns: LogsColumnsConfig):
        self.client = client
        self.database_id = database_id
        self.columns = columns

    def _page_to_log(self, page: dict[str, Any]) -> DailyLog | None:
        if page.get("object") != "page" or page.get("archived"):
            return None
        c = self.columns
        props = page.get("properties", {})
        log_date = _extract_date(props.get(c.date))
        if not log_date:
            return None

        went_well = _extract_rich_text(props.get(c.went_well)) or None
        content = create_log_content(
            _extract_title(props.get(c.title)),
            went_well,
            score=_extract_number(props.get(c.score)),
            mood=_extract_number(props.get(c.mood)),
            energy=_extract_number(props.get(c.energy)),
            deep_work_hours=_extract_number(props.get(c.deep_work_hours)),
            workout=_extract_checkbox(props.get(c.workout)),
            diet=_extract_checkbox(props.get(c.diet)),
            reading_mins=_extract_number(props.get(c.reading_mins)),
            went_well=went_well,
            improve=_extract_rich_text(props.get(c.improve)) or None,
            gratitude=_extract_rich_text(props.get(c.gratitude)) or None,
            tomorrow=_extract_rich_text(props.get(c.tomorrow)) or None,
        )
        return DailyLog(date=log_date, content=content, id=page["id"])

    def _log_properties(self, log_date: str, content: LogContent) -> dict[str, Any]:
        c = self.columns
        return {
            c.date: _date_prop(log_date),
            c.title: _title_prop(content.title),
            c.score: {"number": content.score},
            c.mood: {"number": content.mood},
            c.energy: {"number": content.energy},
            c.deep_work_hours: {"number": content.deep_work_hours},
            c.workout: {"checkbox": bool(content.workout)},
            c.diet: {"checkbox": bool(content.diet)},
            c.reading_mins: {"number": content.reading_mins},
            # Free-form notes land in "went well" when that field is empty
            c.went_well: _rich_text_prop(content.went_well or content.notes),
            c.improve: _rich_text_prop(content.improve),
            c.gratitude: _rich_text_prop(content.gratitude),
            c.tomorrow: _rich_text_prop(content.tomorrow),
        }

    async def find_by_date(self, log_date: str) -> DailyLog | None:
        pages = await self.client.query_database(
            self.database_id,
            filter={"property": self.columns.date, "date": {"equals": log_date}},
            limit=1,
        )
        if not pages:
            return None
        return self._page_to_log(pages[0])

    async def find_by_date_range(self, start: str, end: str) -> list[DailyLog]:
        c = self.columns
        pages = await self.client.query_database(
            self.database_id,
            filter={
                "and": [
                    {"property": c.date, "date": {"on_or_after": start}},
                    {"property": c.date, "date": {"on_or_before": end}},
                ]
            },
            sorts=[{"property": c.date, "direction": "ascending"}],
        )
        logs = [self._page_to_log(page) for page in pages]
        return [log for log in logs if log is not None]

    async def save(self, log: DailyLog) -> None:
        props = self._log_properties(log.date, log.content)
        existing = await self.find_by_date(log.date)
        if existing and existing.id:
            await self.client.update_page(existing.id, properties=props)
            return
        page = await self.client.create_page(self.database_id, props)
        logger.debug(f"Created Notion page {page['id']} for log {log.date}")

    async def fetch_last_edited_time(self, page_id: str) -> str | None:
        page = await self.client.retrieve_page(page_id)
        return page.get("last_edited_time")
