"""Discriminated results returned by every core service operation."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from django.db import DatabaseError

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    PRECONDITION = "precondition"
    DATA_INTEGRITY = "data_integrity"
    UPSTREAM_FAILURE = "upstream_failure"
    STORE_FAILURE = "store_failure"

    @property
    def retryable(self) -> bool:
        """Only infrastructure failures can succeed when retried unchanged."""
        return self in (ErrorKind.UPSTREAM_FAILURE, ErrorKind.STORE_FAILURE)


@dataclass(frozen=True)
class ServiceError:
    kind: ErrorKind
    message: str

    def as_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class ServiceResult:
    ok: bool
    value: Any = None
    error: Optional[ServiceError] = None

    @classmethod
    def success(cls, value: Any = None) -> "ServiceResult":
        return cls(ok=True, value=value)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "ServiceResult":
        return cls(ok=False, error=ServiceError(kind=kind, message=message))

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None


def store_guarded(operation: str) -> Callable:
    """Report persistence errors raised inside a service method as StoreFailure."""

    def decorator(func: Callable[..., ServiceResult]) -> Callable[..., ServiceResult]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult:
            try:
                return func(*args, **kwargs)
            except DatabaseError:
                logger.exception("Store failure during %s", operation)
                return ServiceResult.fail(ErrorKind.STORE_FAILURE, f"Storage error while {operation}")

        return wrapper

    return decorator
