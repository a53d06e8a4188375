"""SQLModel entities for the task tracking API."""

from .enums import Category, Priority
from .refresh_token import RefreshToken
from .task import Task
from .user import Account

__all__ = ["Account", "Category", "Priority", "RefreshToken", "Task"]
