import logging
from typing import List

from fastapi import APIRouter, Depends, Query

from ..domain.errors import PlannerValidationError, TaskNotFound
from ..infrastructure.repositories import SqlAlchemyTaskRepository
from ..utils.week import is_valid_date
from .dependencies import get_task_repository
from .schemas import DeleteResult, TaskCreate, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.get("", response_model=List[TaskOut])
async def get_tasks_for_week(
    start_date: str = Query(...),
    end_date: str = Query(...),
    repo: SqlAlchemyTaskRepository = Depends(get_task_repository),
) -> List[TaskOut]:
    """Tasks dated within the inclusive range, ordered for display."""
    for name, value in (("start_date", start_date), ("end_date", end_date)):
        if not is_valid_date(value):
            raise PlannerValidationError(f"{name} must be YYYY-MM-DD", field=name)
    tasks = await repo.list_for_range(start_date, end_date)
    return [TaskOut.model_validate(t) for t in tasks]


@router.post("", response_model=TaskOut, status_code=201)
async def create_task(
    request: TaskCreate,
    repo: SqlAlchemyTaskRepository = Depends(get_task_repository),
) -> TaskOut:
    task = await repo.create(
        content=request.content,
        date=request.date,
        time_block=request.time_block,
        sort_order=request.sort_order or 0,
    )
    logger.info(f"Task {task.id} created for {task.date} {task.time_block.value}")
    return TaskOut.model_validate(task)


@router.patch("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: int,
    request: TaskUpdate,
    repo: SqlAlchemyTaskRepository = Depends(get_task_repository),
) -> TaskOut:
    changes = request.model_dump(exclude_unset=True)
    task = await repo.update(task_id, **changes)
    if task is None:
        raise TaskNotFound(task_id)
    return TaskOut.model_validate(task)


@router.delete("/{task_id}", response_model=DeleteResult)
async def delete_task(
    task_id: int,
    repo: SqlAlchemyTaskRepository = Depends(get_task_repository),
) -> DeleteResult:
    """Delete a task; ``deleted`` is False when it was already gone."""
    deleted = await repo.delete(task_id)
    if not deleted:
        logger.debug(f"Delete of missing task {task_id} ignored")
    return DeleteResult(deleted=deleted)
