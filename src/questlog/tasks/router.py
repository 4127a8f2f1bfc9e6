"""Task API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response

from questlog.auth.dependencies import get_current_user
from questlog.dependencies import get_engine, get_store
from questlog.gamification.engine import ProgressionEngine
from questlog.storage.base import ProgressionStore, UserRecord
from questlog.tasks import service
from questlog.tasks.schemas import (
    CompletionResponse,
    TaskCreateRequest,
    TaskResponse,
    TaskUpdateRequest,
)

router = APIRouter(prefix="/api/v1/tasks", tags=["Tasks"])


@router.get("", response_model=list[TaskResponse])
async def list_tasks(
    completed: bool | None = Query(None),
    user: UserRecord = Depends(get_current_user),
    store: ProgressionStore = Depends(get_store),
):
    """List the caller's tasks, newest first."""
    tasks = await service.list_tasks(store, user.id, completed=completed)
    return [TaskResponse.model_validate(t) for t in tasks]


@router.post("", response_model=TaskResponse, status_code=201)
async def create_task(
    body: TaskCreateRequest,
    user: UserRecord = Depends(get_current_user),
    store: ProgressionStore = Depends(get_store),
):
    """Create a task."""
    task = await service.create_task(store, user.id, **body.model_dump())
    return TaskResponse.model_validate(task)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    user: UserRecord = Depends(get_current_user),
    store: ProgressionStore = Depends(get_store),
):
    task = await service.get_task(store, user.id, task_id)
    return TaskResponse.model_validate(task)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    body: TaskUpdateRequest,
    user: UserRecord = Depends(get_current_user),
    store: ProgressionStore = Depends(get_store),
):
    """Update editable fields of a task."""
    task = await service.update_task(store, user.id, task_id, body.model_dump(exclude_unset=True))
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=204)
async def delete_task(
    task_id: int,
    user: UserRecord = Depends(get_current_user),
    store: ProgressionStore = Depends(get_store),
) -> Response:
    await service.delete_task(store, user.id, task_id)
    return Response(status_code=204)


@router.patch("/{task_id}/complete", response_model=CompletionResponse)
async def complete_task(
    task_id: int,
    user: UserRecord = Depends(get_current_user),
    engine: ProgressionEngine = Depends(get_engine),
):
    """Complete a task and collect its experience."""
    result = await engine.complete_task(task_id, user.id)
    return CompletionResponse.model_validate(result)
