"""
Query/pagination engine for tasks.

build_task_query turns raw request values into a normalized TaskQuery
(validated filters, one allow-listed sort key, clamped paging). Stores
translate a TaskQuery into their own predicate form; fetch_page combines a
store's filtered count and filtered page into a PagedResult.
"""
from dataclasses import dataclass, field
from datetime import datetime
import math
from typing import Any, Callable, Generic, List, Optional, TypeVar

from tasktrack.clock import to_utc
from tasktrack.errors import FieldError, ValidationFailed
from tasktrack.models.enums import Category, Priority

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
SEARCH_TERM_MAX_LENGTH = 200
TAGS_FILTER_MAX_LENGTH = 500

# Wire name -> Task attribute. Lookups ignore case; snake_case attribute names are accepted too.
SORT_FIELDS = {
    "id": "id",
    "title": "title",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "priority": "priority",
    "category": "category",
    "dueDate": "due_date",
    "isCompleted": "is_completed",
}
_SORT_LOOKUP = {name.lower(): attr for name, attr in SORT_FIELDS.items()}
_SORT_LOOKUP.update({attr: attr for attr in SORT_FIELDS.values()})
DEFAULT_SORT_FIELD = "created_at"


@dataclass(frozen=True)
class TaskQuery:
    """Normalized filter, sort and page request over one account's tasks."""
    is_completed: Optional[bool] = None
    priority: Optional[Priority] = None
    category: Optional[Category] = None
    due_date_from: Optional[datetime] = None
    due_date_to: Optional[datetime] = None
    search_term: Optional[str] = None
    tags: Optional[str] = None
    sort_by: str = DEFAULT_SORT_FIELD
    sort_descending: bool = True
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


@dataclass
class PagedResult(Generic[T]):
    items: List[T] = field(default_factory=list)
    total_items: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size)

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def map(self, mapper: Callable[[T], U]) -> "PagedResult[U]":
        return PagedResult(
            items=[mapper(item) for item in self.items],
            total_items=self.total_items,
            page=self.page,
            page_size=self.page_size,
        )


def clamp_page(page: Optional[int]) -> int:
    if page is None or page < 1:
        return 1
    return page


def clamp_page_size(page_size: Optional[int]) -> int:
    if page_size is None:
        return DEFAULT_PAGE_SIZE
    return max(1, min(MAX_PAGE_SIZE, page_size))


def resolve_sort_field(sort_by: Optional[str]) -> str:
    """
    Map a client sort key to a Task attribute.

    Raises:
        ValidationFailed: If the key is blank or not allow-listed
    """
    if sort_by is None:
        return DEFAULT_SORT_FIELD
    key = sort_by.strip().lower()
    if not key:
        raise ValidationFailed.single("sortBy", "SortBy is required")
    if key not in _SORT_LOOKUP:
        raise ValidationFailed.single(
            "sortBy",
            "Invalid sort field. Valid fields are: " + ", ".join(SORT_FIELDS),
        )
    return _SORT_LOOKUP[key]


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def build_task_query(
    is_completed: Optional[bool] = None,
    priority: Any = None,
    category: Any = None,
    due_date_from: Optional[datetime] = None,
    due_date_to: Optional[datetime] = None,
    search_term: Optional[str] = None,
    tags: Optional[str] = None,
    sort_by: Optional[str] = None,
    sort_descending: bool = True,
    page: Optional[int] = None,
    page_size: Optional[int] = None,
) -> TaskQuery:
    """
    Validate and normalize raw query values.

    Every failing field is collected and reported in one ValidationFailed.
    Page and page size are clamped, never rejected.
    """
    errors: List[FieldError] = []

    parsed_priority = None
    if priority is not None:
        try:
            parsed_priority = Priority.parse(priority)
        except ValueError:
            errors.append(FieldError("priority", "Invalid priority value"))

    parsed_category = None
    if category is not None:
        try:
            parsed_category = Category.parse(category)
        except ValueError:
            errors.append(FieldError("category", "Invalid category value"))

    due_date_from = to_utc(due_date_from)
    due_date_to = to_utc(due_date_to)
    if due_date_from is not None and due_date_to is not None and due_date_from > due_date_to:
        errors.append(FieldError("dueDateFrom", "DueDateFrom must be less than or equal to DueDateTo"))

    search_term = _blank_to_none(search_term)
    if search_term is not None and len(search_term) > SEARCH_TERM_MAX_LENGTH:
        errors.append(FieldError("searchTerm", f"Search term cannot exceed {SEARCH_TERM_MAX_LENGTH} characters"))

    tags = _blank_to_none(tags)
    if tags is not None and len(tags) > TAGS_FILTER_MAX_LENGTH:
        errors.append(FieldError("tags", f"Tags cannot exceed {TAGS_FILTER_MAX_LENGTH} characters"))

    sort_field = DEFAULT_SORT_FIELD
    try:
        sort_field = resolve_sort_field(sort_by)
    except ValidationFailed as exc:
        errors.extend(exc.errors)

    if errors:
        raise ValidationFailed(errors)

    return TaskQuery(
        is_completed=is_completed,
        priority=parsed_priority,
        category=parsed_category,
        due_date_from=due_date_from,
        due_date_to=due_date_to,
        search_term=search_term,
        tags=tags,
        sort_by=sort_field,
        sort_descending=sort_descending,
        page=clamp_page(page),
        page_size=clamp_page_size(page_size),
    )


async def fetch_page(store, account_id: int, query: TaskQuery) -> PagedResult:
    """Count and fetch one page with the same predicate."""
    total = await store.count_tasks(account_id, query)
    items = await store.list_tasks(account_id, query, offset=query.offset, limit=query.page_size)
    return PagedResult(items=items, total_items=total, page=query.page, page_size=query.page_size)
