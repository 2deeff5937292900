from typing import Generic, TypeVar

from pydantic import BaseModel

from campus.services.store import PageResult

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    size: int
    total: int
    pages: int

    @classmethod
    def from_result(cls, result: PageResult) -> "Page[T]":
        return cls(
            items=result.items,
            page=result.page,
            size=result.size,
            total=result.total,
            pages=result.pages,
        )


class CountOut(BaseModel):
    count: int


class SeatsOut(BaseModel):
    class_session_id: str
    available_seats: int
    has_available_seats: bool
