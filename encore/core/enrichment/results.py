"""
Typed outcome of a best-effort provider lookup.

Providers never raise to their callers. They return a `LookupResult`, and the
caller decides what "absent" means for the field it is filling in.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class LookupStatus(Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class LookupResult(Generic[T]):
    status: LookupStatus
    value: T | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.SUCCESS and self.value is not None

    @classmethod
    def success(cls, value: T) -> LookupResult[T]:
        return cls(LookupStatus.SUCCESS, value=value)

    @classmethod
    def not_found(cls, reason: str | None = None) -> LookupResult[T]:
        return cls(LookupStatus.NOT_FOUND, error=reason)

    @classmethod
    def transport_error(cls, error: str) -> LookupResult[T]:
        return cls(LookupStatus.TRANSPORT_ERROR, error=error)
