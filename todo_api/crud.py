import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from .config import get_settings
from .models import Task, TaskTag
from .schemas import TaskInput, TaskQuery
from .utils import next_update_time, utc_now

logger = logging.getLogger(__name__)

# Lower-cased orderBy value -> column. Anything else sorts by creation time.
SORT_COLUMNS = {
    "title": Task.title,
    "duedate": Task.due_date,
    "updatedat": Task.updated_at,
    "createdat": Task.created_at,
}


def max_take() -> int:
    """Largest page the list query will return"""
    return get_settings().tasks_max_take


class TaskNotFoundError(LookupError):
    """Raised when a task id does not exist"""

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


def _search_condition(search_term: Optional[str]):
    if not search_term or not search_term.strip():
        return None
    return or_(
        Task.title.contains(search_term, autoescape=True),
        Task.tags.any(TaskTag.tag.contains(search_term, autoescape=True)),
    )


def _order_clauses(order_by: Optional[str], ascending: bool):
    column = SORT_COLUMNS.get((order_by or "").lower(), Task.created_at)
    if ascending:
        return column.asc(), Task.id.asc()
    return column.desc(), Task.id.desc()


async def list_tasks(
    db: AsyncSession, query: TaskQuery
) -> Tuple[List[Task], int, int]:
    """Get one page of tasks plus the total and completed counts.

    The counts only honour the search term, not the completed/overdue
    filters, so they describe the whole search scope.
    """
    search = _search_condition(query.search_term)
    conditions = [search] if search is not None else []

    count_query = select(func.count(Task.id)).filter(*conditions)
    total_count = (await db.execute(count_query)).scalar_one()
    completed_count = (
        await db.execute(count_query.filter(Task.completed.is_(True)))
    ).scalar_one()

    if query.completed is not None:
        conditions.append(Task.completed == query.completed)

    if query.overdue:
        conditions.append(Task.completed.is_(False))
        conditions.append(Task.due_date < utc_now())

    take = min(query.take, max_take())
    stmt = (
        select(Task)
        .filter(*conditions)
        .order_by(*_order_clauses(query.order_by, query.ascending))
        .offset(query.skip)
        .limit(take)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total_count, completed_count


async def get_task(db: AsyncSession, task_id: str) -> Optional[Task]:
    """Get a task by ID"""
    result = await db.execute(select(Task).filter(Task.id == task_id))
    return result.scalar_one_or_none()


async def create_task(db: AsyncSession, task_in: TaskInput) -> Task:
    """Create a new task; id and creation time are assigned here"""
    db_task = Task(
        title=task_in.title,
        completed=task_in.completed,
        due_date=task_in.due_date,
        created_at=utc_now(),
        updated_at=None,
        tags=[TaskTag(tag=tag) for tag in task_in.tags],
    )
    db.add(db_task)
    await db.commit()
    await db.refresh(db_task)
    logger.info("Created task %s", db_task.id)
    return db_task


async def update_task(db: AsyncSession, task_id: str, task_in: TaskInput) -> Task:
    """Replace every mutable field of a task, tags included"""
    db_task = await get_task(db, task_id)
    if db_task is None:
        raise TaskNotFoundError(task_id)

    db_task.title = task_in.title
    db_task.completed = task_in.completed
    db_task.due_date = task_in.due_date
    db_task.updated_at = next_update_time(db_task.updated_at or db_task.created_at)

    # Old tag rows must be gone before re-inserting the same (tag, task_id) keys
    db_task.tags.clear()
    await db.flush()
    db_task.tags.extend(TaskTag(tag=tag) for tag in task_in.tags)

    await db.commit()
    await db.refresh(db_task)
    logger.info("Updated task %s", task_id)
    return db_task


async def delete_task(db: AsyncSession, task_id: str) -> None:
    """Delete a task and its tags"""
    db_task = await get_task(db, task_id)
    if db_task is None:
        raise TaskNotFoundError(task_id)

    await db.delete(db_task)
    await db.commit()
    logger.info("Deleted task %s", task_id)


async def list_tags(db: AsyncSession) -> List[str]:
    """Distinct tag text across all tasks, sorted"""
    result = await db.execute(select(TaskTag.tag).distinct().order_by(TaskTag.tag))
    return list(result.scalars().all())
