"""Async HTTP client for the task API and a paginated, optimistic task cache.

``TaskClient`` maps one method to one endpoint. ``TaskFeed`` keeps the pages
of a single list query in memory the way the web front end does: pages are
fetched incrementally, mutations are applied locally first, then confirmed
by refetching; a failed mutation puts the previous pages back.
"""

import copy
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from .utils import as_utc, normalize_tags, utc_now

logger = logging.getLogger(__name__)

API_PREFIX = "/api"


class TaskApiError(Exception):
    """Non-2xx response from the task API"""

    def __init__(self, status_code: int, detail: Any = None):
        super().__init__(f"Task API returned {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class TaskApiNotFound(TaskApiError):
    pass


def _task_body(
    title: str,
    completed: bool = False,
    due_date: Optional[datetime] = None,
    tags: Optional[List[str]] = None,
) -> Dict[str, Any]:
    return {
        "title": title,
        "completed": completed,
        "dueDate": due_date.isoformat() if due_date else None,
        "tags": list(tags or []),
    }


class TaskClient:
    """Thin async wrapper around the REST endpoints"""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "TaskClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._http.request(method, API_PREFIX + path, **kwargs)
        if response.status_code == 404:
            raise TaskApiNotFound(404)
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail") if isinstance(body, dict) else response.text
            raise TaskApiError(response.status_code, detail)
        return response

    async def list_tasks(
        self,
        *,
        search_term: Optional[str] = None,
        completed: Optional[bool] = None,
        overdue: Optional[bool] = None,
        skip: int = 0,
        take: int = 20,
        order_by: str = "createdAt",
        ascending: bool = False,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "skip": skip,
            "take": take,
            "orderBy": order_by,
            "ascending": str(ascending).lower(),
        }
        if search_term and search_term.strip():
            params["searchTerm"] = search_term
        if completed is not None:
            params["completed"] = str(completed).lower()
        if overdue is not None:
            params["overdue"] = str(overdue).lower()
        response = await self._request("GET", "/tasks", params=params)
        return response.json()

    async def get_task(self, task_id: str) -> Dict[str, Any]:
        response = await self._request("GET", f"/tasks/{task_id}")
        return response.json()

    async def create_task(self, title: str, **fields) -> Dict[str, Any]:
        response = await self._request("POST", "/tasks", json=_task_body(title, **fields))
        return response.json()

    async def update_task(self, task_id: str, title: str, **fields) -> Dict[str, Any]:
        response = await self._request(
            "PUT", f"/tasks/{task_id}", json=_task_body(title, **fields)
        )
        return response.json()

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def list_tags(self) -> List[str]:
        response = await self._request("GET", "/tags")
        return response.json()

    async def get_info(self) -> Dict[str, Any]:
        response = await self._request("GET", "/info")
        return response.json()


class TaskFeed:
    """Cached pages of one list query with optimistic mutations"""

    def __init__(
        self,
        client: TaskClient,
        *,
        search_term: Optional[str] = None,
        completed: Optional[bool] = None,
        overdue: Optional[bool] = None,
        order_by: str = "createdAt",
        ascending: bool = False,
        page_size: int = 20,
    ):
        self.client = client
        self.page_size = page_size
        self._params = {
            "search_term": search_term,
            "completed": completed,
            "overdue": overdue,
            "order_by": order_by,
            "ascending": ascending,
        }
        self.pages: List[Dict[str, Any]] = []
        self._effective_page_size: Optional[int] = None

    @property
    def tasks(self) -> List[Dict[str, Any]]:
        """Cached tasks in page order; a row shifted onto a later page shows once"""
        merged: Dict[str, Dict[str, Any]] = {}
        for page in self.pages:
            for task in page["tasks"]:
                merged.setdefault(task["id"], task)
        return list(merged.values())

    @property
    def total_count(self) -> int:
        return self.pages[0]["totalCount"] if self.pages else 0

    @property
    def completed_count(self) -> int:
        return self.pages[0]["completedCount"] if self.pages else 0

    @property
    def overdue_count(self) -> int:
        """Open tasks past their due date, among the cached ones"""
        now = utc_now()
        return sum(
            1
            for task in self.tasks
            if not task["completed"] and task["dueDate"] and _parse_timestamp(task["dueDate"]) < now
        )

    @property
    def has_next_page(self) -> bool:
        if not self.pages:
            return True
        return len(self.pages[-1]["tasks"]) == (self._effective_page_size or self.page_size)

    async def _page_size(self) -> int:
        # The server clamps take; a short page only means "last page" below that cap
        if self._effective_page_size is None:
            info = await self.client.get_info()
            self._effective_page_size = min(self.page_size, info.get("max_take", self.page_size))
        return self._effective_page_size

    async def _fetch_page(self, index: int) -> Dict[str, Any]:
        size = await self._page_size()
        return await self.client.list_tasks(skip=index * size, take=size, **self._params)

    async def fetch_next_page(self) -> List[Dict[str, Any]]:
        """Load the next page and return its tasks; empty when exhausted"""
        if not self.has_next_page:
            return []
        page = await self._fetch_page(len(self.pages))
        self.pages.append(page)
        return page["tasks"]

    async def refetch(self) -> None:
        """Throw the cached pages away and reload as many as were loaded"""
        count = max(len(self.pages), 1)
        pages = []
        for index in range(count):
            page = await self._fetch_page(index)
            pages.append(page)
            if len(page["tasks"]) < await self._page_size():
                break
        self.pages = pages

    async def _mutate(self, apply_locally, request):
        snapshot = copy.deepcopy(self.pages)
        apply_locally()
        try:
            result = await request()
        except Exception:
            logger.warning("Mutation rejected, restoring cached pages")
            self.pages = snapshot
            raise
        await self.refetch()
        return result

    def _find(self, task_id: str):
        for page in self.pages:
            for index, task in enumerate(page["tasks"]):
                if task["id"] == task_id:
                    return page, index
        return None, None

    def _adjust_counts(self, total: int, completed: int) -> None:
        first = self.pages[0]
        first["totalCount"] += total
        first["completedCount"] += completed

    async def add_task(self, title: str, **fields) -> Dict[str, Any]:
        placeholder = {
            "id": f"pending-{uuid.uuid4()}",
            "title": title,
            "completed": bool(fields.get("completed", False)),
            "dueDate": fields["due_date"].isoformat() if fields.get("due_date") else None,
            "tags": normalize_tags(fields.get("tags")),
            "createdAt": utc_now().isoformat(),
            "updatedAt": None,
        }

        def apply_locally():
            if not self.pages:
                self.pages.append(
                    {"tasks": [], "totalCount": 0, "completedCount": 0, "returnedCount": 0}
                )
            first = self.pages[0]
            first["tasks"].insert(0, placeholder)
            first["returnedCount"] += 1
            self._adjust_counts(1, int(placeholder["completed"]))

        return await self._mutate(
            apply_locally, lambda: self.client.create_task(title, **fields)
        )

    async def update_task(self, task_id: str, title: str, **fields) -> Dict[str, Any]:
        completed = bool(fields.get("completed", False))

        def apply_locally():
            page, index = self._find(task_id)
            if page is None:
                return
            task = page["tasks"][index]
            self._adjust_counts(0, int(completed) - int(task["completed"]))
            task.update(
                title=title,
                completed=completed,
                dueDate=fields["due_date"].isoformat() if fields.get("due_date") else None,
                tags=normalize_tags(fields.get("tags")),
                updatedAt=utc_now().isoformat(),
            )

        return await self._mutate(
            apply_locally, lambda: self.client.update_task(task_id, title, **fields)
        )

    async def delete_task(self, task_id: str) -> None:
        def apply_locally():
            page, index = self._find(task_id)
            if page is None:
                return
            task = page["tasks"].pop(index)
            page["returnedCount"] -= 1
            self._adjust_counts(-1, -int(task["completed"]))

        await self._mutate(apply_locally, lambda: self.client.delete_task(task_id))


def _parse_timestamp(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
