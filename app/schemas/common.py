"""
Common Response Schemas
"""
import re
from pydantic import BaseModel
from typing import Generic, TypeVar, Optional, List

T = TypeVar("T")


class ResponseBase(BaseModel):
    success: bool
    message: str


class DataResponse(ResponseBase, Generic[T]):
    data: Optional[T] = None


class PaginationResponse(ResponseBase, Generic[T]):
    data: List[T]
    total: int
    page: int
    size: int
    pages: int


def normalize_pg_timezone(v):
    """
    Fix datetime timezone format from PostgreSQL
    PostgreSQL returns: '2025-10-01 09:17:39.587802+00'
    Pydantic expects: '2025-10-01 09:17:39.587802+00:00'
    """
    if v == '' or v is None:
        return None

    # Fix timezone format: +00 -> +00:00, +07 -> +07:00
    if isinstance(v, str):
        match = re.search(r'([+-]\d{2})$', v)
        if match:
            v = v + ':00'

    return v
