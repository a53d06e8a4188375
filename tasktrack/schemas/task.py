"""Task schemas."""
from pydantic import Field
from datetime import datetime
from typing import Optional, Union

from tasktrack.models import Category, Priority, Task
from tasktrack.schemas.common import ApiModel

EnumInput = Union[int, str]


class TaskCreate(ApiModel):
    """Schema for creating a task. Priority and category accept a number or a label."""
    title: str
    description: Optional[str] = None
    priority: Optional[EnumInput] = Field(default=None, description=f"One of {Priority.labels()} or 1-4")
    category: Optional[EnumInput] = Field(default=None, description=f"One of {Category.labels()} or 1-8")
    due_date: Optional[datetime] = None
    tags: Optional[str] = Field(default=None, description="Comma separated tags")


class TaskUpdate(ApiModel):
    """Schema for updating a task; only the fields sent are applied."""
    title: Optional[str] = None
    description: Optional[str] = None
    is_completed: Optional[bool] = None
    priority: Optional[EnumInput] = None
    category: Optional[EnumInput] = None
    due_date: Optional[datetime] = None
    tags: Optional[str] = None


class TaskResponse(ApiModel):
    """Schema for task API responses."""
    id: int
    title: str
    description: Optional[str] = None
    is_completed: bool
    priority: str
    category: str
    due_date: Optional[datetime] = None
    tags: Optional[str] = None
    is_overdue: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            is_completed=task.is_completed,
            priority=Priority(task.priority).label,
            category=Category(task.category).label,
            due_date=task.due_date,
            tags=task.tags,
            is_overdue=task.is_overdue,
            created_at=task.created_at,
            updated_at=task.updated_at,
        )
