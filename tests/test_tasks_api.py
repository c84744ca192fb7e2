# tests/test_tasks_api.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy.exc import SQLAlchemyError

from todo_api.db import get_db
from todo_api.main import app


def _yesterday() -> str:
    return (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()


async def _post(client, **body):
    return await client.post("/api/tasks", json=body)


async def test_create_returns_201_with_location(client):
    response = await _post(client, title="Write README")

    assert response.status_code == 201
    task = response.json()
    assert set(task) == {"id", "title", "completed", "dueDate", "tags", "createdAt", "updatedAt"}
    assert task["completed"] is False
    assert task["dueDate"] is None
    assert task["updatedAt"] is None
    assert task["tags"] == []
    assert response.headers["location"].endswith(f"/api/tasks/{task['id']}")


async def test_title_bounds(client):
    assert (await _post(client, title="x")).status_code == 201
    assert (await _post(client, title="x" * 140)).status_code == 201

    too_short = await _post(client, title="")
    too_long = await _post(client, title="x" * 141)
    assert too_short.status_code == 400
    assert too_long.status_code == 400
    assert "detail" in too_long.json()


async def test_missing_title_is_400(client):
    response = await client.post("/api/tasks", json={"completed": True})
    assert response.status_code == 400


async def test_duplicate_tags_collapsed(client):
    task = (await _post(client, title="Tagged", tags=["a", "a", "b"])).json()
    assert sorted(task["tags"]) == ["a", "b"]


async def test_example_scenario(client):
    t1 = (await _post(client, title="Write README", tags=[])).json()
    t2 = (await _post(client, title="Pay bills", tags=["finance"], dueDate=_yesterday())).json()

    overdue = (await client.get("/api/tasks", params={"overdue": "true"})).json()
    assert [t["id"] for t in overdue["tasks"]] == [t2["id"]]

    search = (await client.get("/api/tasks", params={"searchTerm": "bills"})).json()
    assert [t["id"] for t in search["tasks"]] == [t2["id"]]
    assert search["totalCount"] == 1
    assert search["returnedCount"] == 1

    assert (await client.delete(f"/api/tasks/{t2['id']}")).status_code == 204
    assert (await client.get(f"/api/tasks/{t2['id']}")).status_code == 404
    assert (await client.get(f"/api/tasks/{t1['id']}")).status_code == 200


async def test_list_counts_ignore_completed_filter(client):
    await _post(client, title="open one")
    await _post(client, title="done one", completed=True)
    await _post(client, title="done two", completed=True)

    body = (await client.get("/api/tasks", params={"completed": "true"})).json()

    assert all(t["completed"] for t in body["tasks"])
    assert body["returnedCount"] == 2
    assert body["totalCount"] == 3
    assert body["completedCount"] == 2


async def test_pagination_two_pages(client):
    await _post(client, title="first")
    await _post(client, title="second")

    page1 = (await client.get("/api/tasks", params={"take": 1, "skip": 0})).json()
    page2 = (await client.get("/api/tasks", params={"take": 1, "skip": 1})).json()

    ids = [t["id"] for t in page1["tasks"] + page2["tasks"]]
    assert len(ids) == 2
    assert len(set(ids)) == 2


async def test_order_by_title_ascending(client):
    for title in ["b", "c", "a"]:
        await _post(client, title=title)

    body = (
        await client.get("/api/tasks", params={"orderBy": "title", "ascending": "true"})
    ).json()
    assert [t["title"] for t in body["tasks"]] == ["a", "b", "c"]


async def test_invalid_query_params_are_400(client):
    assert (await client.get("/api/tasks", params={"take": 0})).status_code == 400
    assert (await client.get("/api/tasks", params={"skip": -1})).status_code == 400
    assert (await client.get("/api/tasks", params={"completed": "maybe"})).status_code == 400


async def test_update_replaces_task(client):
    task = (await _post(client, title="Draft", tags=["x"])).json()

    response = await client.put(
        f"/api/tasks/{task['id']}",
        json={"title": "Final", "completed": True, "tags": ["y", "y"]},
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] == task["id"]
    assert updated["title"] == "Final"
    assert updated["completed"] is True
    assert updated["tags"] == ["y"]
    assert updated["updatedAt"] is not None
    assert updated["createdAt"] == task["createdAt"]


async def test_update_and_delete_missing_are_404(client):
    put = await client.put("/api/tasks/missing", json={"title": "x"})
    delete = await client.delete("/api/tasks/missing")

    assert put.status_code == 404
    assert put.content == b""
    assert delete.status_code == 404


async def test_update_validation_is_400(client):
    task = (await _post(client, title="ok")).json()
    response = await client.put(f"/api/tasks/{task['id']}", json={"title": "x" * 141})
    assert response.status_code == 400


async def test_tags_endpoint(client):
    await _post(client, title="one", tags=["work", "home"])
    await _post(client, title="two", tags=["home"])

    response = await client.get("/api/tags")
    assert response.status_code == 200
    assert response.json() == ["home", "work"]


async def test_store_failure_is_generic_500(transport):
    class BrokenSession:
        async def execute(self, *args, **kwargs):
            raise SQLAlchemyError("connection lost")

    async def broken_db():
        yield BrokenSession()

    app.dependency_overrides[get_db] = broken_db
    broken = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=broken, base_url="http://test") as http:
        response = await http.get("/api/tasks")

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
