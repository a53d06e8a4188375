"""Task router: /api/todos."""
from fastapi import APIRouter, Depends, Query, Request, Response, status
from typing import List, Optional
from datetime import datetime

from tasktrack.schemas.common import PagedResponse
from tasktrack.schemas.task import TaskCreate, TaskUpdate, TaskResponse
from tasktrack.services.query import build_task_query
from tasktrack.services.task_service import TaskService
from tasktrack.middleware.auth import get_current_user, CurrentUser

router = APIRouter(tags=["Todos"])  # No prefix since main.py adds /api/todos


def get_task_service(request: Request) -> TaskService:
    """Dependency for getting the application's TaskService."""
    return request.app.state.task_service


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    task_data: TaskCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Create a new task; priority and category default to Medium and General."""
    task = await service.create_task(
        account_id=current_user.account_id,
        title=task_data.title,
        description=task_data.description,
        priority=task_data.priority,
        category=task_data.category,
        due_date=task_data.due_date,
        tags=task_data.tags,
    )
    return TaskResponse.from_task(task)


@router.get("", response_model=PagedResponse[TaskResponse])
async def list_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    is_completed: Optional[bool] = Query(None, alias="isCompleted", description="Filter by completion"),
    priority: Optional[str] = Query(None, description="Low, Medium, High, Critical or 1-4"),
    category: Optional[str] = Query(None, description="Category label or 1-8"),
    due_date_from: Optional[datetime] = Query(None, alias="dueDateFrom", description="Due on or after (ISO format)"),
    due_date_to: Optional[datetime] = Query(None, alias="dueDateTo", description="Due on or before (ISO format)"),
    search_term: Optional[str] = Query(None, alias="searchTerm", description="Search in title/description"),
    tags: Optional[str] = Query(None, description="Substring of the tags field"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="id, title, createdAt, updatedAt, priority, category, dueDate, isCompleted"),
    sort_descending: bool = Query(True, alias="sortDescending"),
    page: Optional[int] = Query(None, description="1-based page number"),
    page_size: Optional[int] = Query(None, alias="pageSize", description="Items per page (1-100)"),
):
    """List the caller's tasks with filtering, sorting and pagination."""
    query = build_task_query(
        is_completed=is_completed,
        priority=priority,
        category=category,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        search_term=search_term,
        tags=tags,
        sort_by=sort_by,
        sort_descending=sort_descending,
        page=page,
        page_size=page_size,
    )
    result = await service.list_tasks(current_user.account_id, query)
    return PagedResponse[TaskResponse].from_result(result, TaskResponse.from_task)


@router.get("/search", response_model=PagedResponse[TaskResponse])
async def search_tasks(
    q: Optional[str] = Query(None, description="Search term"),
    page: Optional[int] = Query(None),
    page_size: Optional[int] = Query(None, alias="pageSize"),
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Search the caller's tasks by title or description."""
    result = await service.search_tasks(current_user.account_id, q, page=page, page_size=page_size)
    return PagedResponse[TaskResponse].from_result(result, TaskResponse.from_task)


@router.get("/overdue", response_model=List[TaskResponse])
async def overdue_tasks(
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Incomplete tasks past their due date, earliest first."""
    tasks = await service.overdue_tasks(current_user.account_id)
    return [TaskResponse.from_task(task) for task in tasks]


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Get a specific task by ID."""
    task = await service.get_task(current_user.account_id, task_id)
    return TaskResponse.from_task(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: int,
    task_data: TaskUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Update the fields present in the body."""
    changes = task_data.model_dump(exclude_unset=True)
    task = await service.update_task(current_user.account_id, task_id, changes)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/complete", response_model=TaskResponse)
async def complete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = await service.mark_complete(current_user.account_id, task_id)
    return TaskResponse.from_task(task)


@router.post("/{task_id}/incomplete", response_model=TaskResponse)
async def incomplete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    task = await service.mark_incomplete(current_user.account_id, task_id)
    return TaskResponse.from_task(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
):
    """Delete a task."""
    await service.delete_task(current_user.account_id, task_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
