# automize/schemas/common.py
from __future__ import annotations

from typing import Generic, List, Literal, TypeVar

from pydantic import BaseModel

from automize.core.enums import ErrorKind

T = TypeVar("T")


# -------------------------
# Envelope {ok, data} | {ok, error_kind, message}
# -------------------------
class Ok(BaseModel, Generic[T]):
    ok: Literal[True] = True
    data: T


class Fail(BaseModel):
    ok: Literal[False] = False
    error_kind: ErrorKind
    message: str


class Page(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
    total_pages: int


def total_pages(total: int, page_size: int) -> int:
    if page_size <= 0:
        return 0
    return (int(total) + page_size - 1) // page_size
