"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, ForeignKey, Text
from datetime import datetime
from typing import Any, Dict, Optional

from tasktrack.clock import to_utc, utcnow
from tasktrack.errors import TaskRuleError
from tasktrack.models.enums import Category, Priority
from tasktrack.models.types import IntEnumType, UTCDateTime

TITLE_MAX_LENGTH = 500
DESCRIPTION_MAX_LENGTH = 2000
TAGS_MAX_LENGTH = 500


def _validated_title(title: Optional[str]) -> str:
    if title is None or not title.strip():
        raise TaskRuleError("title", "Title cannot be empty")
    if len(title) > TITLE_MAX_LENGTH:
        raise TaskRuleError("title", f"Title cannot exceed {TITLE_MAX_LENGTH} characters")
    return title.strip()


def _validated_description(description: Optional[str]) -> Optional[str]:
    if description is None:
        return None
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise TaskRuleError("description", f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters")
    return description.strip() or None


def _validated_tags(tags: Optional[str]) -> Optional[str]:
    if tags is None:
        return None
    if len(tags) > TAGS_MAX_LENGTH:
        raise TaskRuleError("tags", f"Tags cannot exceed {TAGS_MAX_LENGTH} characters")
    return tags.strip() or None


def _validated_due_date(due_date: Optional[datetime]) -> Optional[datetime]:
    due_date = to_utc(due_date)
    if due_date is not None and due_date < utcnow():
        raise TaskRuleError("dueDate", "Due date cannot be in the past")
    return due_date


def _validated_enum(enum_class, value, field: str):
    try:
        return enum_class.parse(value)
    except ValueError:
        raise TaskRuleError(field, f"Invalid {field} value")


class Task(SQLModel, table=True):
    """
    Task entity representing a todo item.

    Build new tasks with Task.create and change them through the mutator
    methods; each mutator validates its field and bumps updated_at.
    """
    __tablename__ = "tasks"

    id: Optional[int] = Field(default=None, primary_key=True)
    account_id: int = Field(
        sa_column=Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), index=True, nullable=False)
    )
    title: str = Field(max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(default=None, sa_column=Column(Text))
    is_completed: bool = Field(default=False, index=True)
    priority: Priority = Field(
        default=Priority.MEDIUM,
        sa_column=Column(IntEnumType(Priority), nullable=False, index=True),
    )
    category: Category = Field(
        default=Category.GENERAL,
        sa_column=Column(IntEnumType(Category), nullable=False, index=True),
    )
    due_date: Optional[datetime] = Field(default=None, index=True, sa_type=UTCDateTime)
    tags: Optional[str] = Field(default=None, max_length=TAGS_MAX_LENGTH)
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    @classmethod
    def create(
        cls,
        account_id: int,
        title: str,
        description: Optional[str] = None,
        priority: Any = Priority.MEDIUM,
        category: Any = Category.GENERAL,
        due_date: Optional[datetime] = None,
        tags: Optional[str] = None,
    ) -> "Task":
        """
        Create a validated, incomplete task.

        Raises:
            TaskRuleError: On the first field that breaks a rule
        """
        now = utcnow()
        return cls(
            account_id=account_id,
            title=_validated_title(title),
            description=_validated_description(description),
            is_completed=False,
            priority=_validated_enum(Priority, priority, "priority"),
            category=_validated_enum(Category, category, "category"),
            due_date=_validated_due_date(due_date),
            tags=_validated_tags(tags),
            created_at=now,
            updated_at=now,
        )

    @classmethod
    def from_record(cls, **fields: Any) -> "Task":
        """Restore a task from stored fields without re-running validation."""
        return cls(**fields)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump()

    @property
    def is_overdue(self) -> bool:
        return not self.is_completed and self.due_date is not None and self.due_date < utcnow()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def update_title(self, title: Optional[str]) -> None:
        self.title = _validated_title(title)
        self.touch()

    def update_description(self, description: Optional[str]) -> None:
        self.description = _validated_description(description)
        self.touch()

    def set_priority(self, priority: Any) -> None:
        self.priority = _validated_enum(Priority, priority, "priority")
        self.touch()

    def set_category(self, category: Any) -> None:
        self.category = _validated_enum(Category, category, "category")
        self.touch()

    def set_due_date(self, due_date: Optional[datetime]) -> None:
        self.due_date = _validated_due_date(due_date)
        self.touch()

    def set_tags(self, tags: Optional[str]) -> None:
        self.tags = _validated_tags(tags)
        self.touch()

    def mark_completed(self) -> None:
        if self.is_completed:
            raise TaskRuleError("isCompleted", "Task is already completed")
        self.is_completed = True
        self.touch()

    def mark_incomplete(self) -> None:
        if not self.is_completed:
            raise TaskRuleError("isCompleted", "Task is already incomplete")
        self.is_completed = False
        self.touch()
