"""Task service: account-scoped task CRUD, completion and queries."""
from datetime import datetime
import logging
from typing import Any, Callable, Dict, List, Optional

from tasktrack.clock import Clock, utcnow
from tasktrack.errors import FieldError, NotFound, TaskRuleError, ValidationFailed
from tasktrack.models import Category, Priority, Task
from tasktrack.services.query import PagedResult, TaskQuery, build_task_query, fetch_page
from tasktrack.stores.base import AccountStore, TaskStore

logger = logging.getLogger(__name__)

# Python attribute -> client field name, used in error reports
FIELD_NAMES = {
    "title": "title",
    "description": "description",
    "is_completed": "isCompleted",
    "priority": "priority",
    "category": "category",
    "due_date": "dueDate",
    "tags": "tags",
}
REQUIRED_ON_UPDATE = ("title", "is_completed", "priority", "category")


class TaskService:
    """Service class for task operations; every call is scoped to one account."""

    def __init__(self, store: TaskStore, accounts: AccountStore, clock: Clock = utcnow):
        self.store = store
        self.accounts = accounts
        self.clock = clock

    async def _require(self, account_id: int, task_id: int) -> Task:
        task = await self.store.get(account_id, task_id)
        if task is None:
            raise NotFound(f"Todo item with ID {task_id} not found")
        return task

    async def _save(self, task: Task) -> Task:
        saved = await self.store.update(task)
        if saved is None:
            raise NotFound(f"Todo item with ID {task.id} not found")
        return saved

    async def create_task(
        self,
        account_id: int,
        title: str,
        description: Optional[str] = None,
        priority: Any = None,
        category: Any = None,
        due_date: Optional[datetime] = None,
        tags: Optional[str] = None,
    ) -> Task:
        """
        Create a task for the account; priority and category default to Medium and General.

        Raises:
            ValidationFailed: If a field breaks a task rule
            NotFound: If the account no longer exists
        """
        if await self.accounts.get(account_id) is None:
            raise NotFound(f"Account with ID {account_id} not found")

        try:
            task = Task.create(
                account_id=account_id,
                title=title,
                description=description,
                priority=Priority.MEDIUM if priority is None else priority,
                category=Category.GENERAL if category is None else category,
                due_date=due_date,
                tags=tags,
            )
        except TaskRuleError as e:
            raise ValidationFailed.single(e.field, e.message)

        task = await self.store.add(task)
        logger.info("Created task %s for account %s", task.id, account_id)
        return task

    async def get_task(self, account_id: int, task_id: int) -> Task:
        return await self._require(account_id, task_id)

    async def list_tasks(self, account_id: int, query: TaskQuery) -> PagedResult[Task]:
        return await fetch_page(self.store, account_id, query)

    async def search_tasks(self, account_id: int, term: Optional[str],
                           page: Optional[int] = None, page_size: Optional[int] = None) -> PagedResult[Task]:
        if term is None or not term.strip():
            raise ValidationFailed.single("searchTerm", "Search term is required")
        query = build_task_query(search_term=term, page=page, page_size=page_size)
        return await fetch_page(self.store, account_id, query)

    async def overdue_tasks(self, account_id: int) -> List[Task]:
        """Incomplete tasks whose due date has passed, earliest due first."""
        now = self.clock()
        query = TaskQuery(is_completed=False, due_date_to=now, sort_by="due_date", sort_descending=False)
        candidates = await self.store.list_tasks(account_id, query)
        return [task for task in candidates if task.due_date < now]

    async def update_task(self, account_id: int, task_id: int, changes: Dict[str, Any]) -> Task:
        """
        Apply the fields present in changes (keys are Task attribute names).

        None clears description, due_date and tags; it is rejected for the
        required fields. Setting is_completed to its current value is an error.

        Raises:
            NotFound: If the task does not exist for this account
            ValidationFailed: With every failing field
        """
        task = await self._require(account_id, task_id)

        mutators: Dict[str, Callable[[Any], None]] = {
            "title": task.update_title,
            "description": task.update_description,
            "priority": task.set_priority,
            "category": task.set_category,
            "due_date": task.set_due_date,
            "tags": task.set_tags,
            "is_completed": lambda done: task.mark_completed() if done else task.mark_incomplete(),
        }

        errors: List[FieldError] = []
        for name, value in changes.items():
            if name not in mutators:
                continue
            if value is None and name in REQUIRED_ON_UPDATE:
                errors.append(FieldError(FIELD_NAMES[name], f"{FIELD_NAMES[name]} cannot be null"))
                continue
            try:
                mutators[name](value)
            except TaskRuleError as e:
                errors.append(FieldError(e.field, e.message))

        if errors:
            raise ValidationFailed(errors)

        saved = await self._save(task)
        logger.info("Updated task %s for account %s", task_id, account_id)
        return saved

    async def mark_complete(self, account_id: int, task_id: int) -> Task:
        task = await self._require(account_id, task_id)
        try:
            task.mark_completed()
        except TaskRuleError as e:
            raise ValidationFailed.single(e.field, e.message)
        return await self._save(task)

    async def mark_incomplete(self, account_id: int, task_id: int) -> Task:
        task = await self._require(account_id, task_id)
        try:
            task.mark_incomplete()
        except TaskRuleError as e:
            raise ValidationFailed.single(e.field, e.message)
        return await self._save(task)

    async def delete_task(self, account_id: int, task_id: int) -> None:
        if not await self.store.delete(account_id, task_id):
            raise NotFound(f"Todo item with ID {task_id} not found")
        logger.info("Deleted task %s for account %s", task_id, account_id)
