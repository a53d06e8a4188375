"""Shared schema pieces: camelCase base model, paging envelope, error body."""
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Callable, Generic, List, Optional, TypeVar

from tasktrack.services.query import PagedResult

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base schema: camelCase on the wire, snake_case accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class PagedResponse(ApiModel, Generic[T]):
    items: List[T]
    total_items: int
    page: int
    page_size: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def from_result(cls, result: PagedResult, mapper: Callable) -> "PagedResponse":
        return cls(
            items=[mapper(item) for item in result.items],
            total_items=result.total_items,
            page=result.page,
            page_size=result.page_size,
            total_pages=result.total_pages,
            has_next_page=result.has_next_page,
            has_previous_page=result.has_previous_page,
        )


class FieldErrorResponse(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    error: str
    code: Optional[str] = None
    errors: Optional[List[FieldErrorResponse]] = None
