from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from .. import crud
from ..crud import TaskNotFoundError
from ..db import get_db
from ..schemas import TaskInput, TaskListResponse, TaskQuery, TaskResponse

router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    search_term: Optional[str] = Query(None, alias="searchTerm"),
    completed: Optional[bool] = Query(None),
    overdue: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    take: int = Query(20, ge=1),
    order_by: str = Query("createdAt", alias="orderBy"),
    ascending: bool = Query(False),
    db: AsyncSession = Depends(get_db),
):
    """Search, filter, sort and paginate tasks"""
    query = TaskQuery(
        search_term=search_term,
        completed=completed,
        overdue=overdue,
        skip=skip,
        take=take,
        order_by=order_by,
        ascending=ascending,
    )
    tasks, total_count, completed_count = await crud.list_tasks(db, query)
    return TaskListResponse(
        tasks=[TaskResponse.model_validate(task) for task in tasks],
        total_count=total_count,
        completed_count=completed_count,
        returned_count=len(tasks),
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """Get a specific task by ID"""
    task = await crud.get_task(db, task_id)
    if task is None:
        raise TaskNotFoundError(task_id)
    return TaskResponse.model_validate(task)


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_in: TaskInput,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a new task"""
    task = await crud.create_task(db, task_in)
    response.headers["Location"] = str(request.url_for("get_task", task_id=task.id))
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    task_in: TaskInput,
    db: AsyncSession = Depends(get_db),
):
    """Replace a specific task"""
    task = await crud.update_task(db, task_id, task_in)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(task_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a specific task"""
    await crud.delete_task(db, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
