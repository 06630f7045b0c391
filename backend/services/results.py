"""Uniform result shape returned by every ride and booking operation."""

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Dict, Optional

from django.db import DatabaseError

from .exceptions import LifecycleError, TRANSIENT

logger = logging.getLogger(__name__)


@dataclass
class ServiceResult:
    """
    Tagged outcome of a service call.

    kind == "ok": `message` plus whichever of ride/booking/dispute the operation produced.
    kind == "error": `error_kind`, `message` and field-level `errors`.
    """
    success: bool
    message: str = ""
    error_kind: Optional[str] = None
    errors: Dict[str, str] = field(default_factory=dict)
    ride: Any = None
    booking: Any = None
    dispute: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def kind(self) -> str:
        return "ok" if self.success else "error"

    @classmethod
    def ok(cls, message: str, **kwargs) -> "ServiceResult":
        return cls(success=True, message=message, **kwargs)

    @classmethod
    def from_error(cls, error: LifecycleError) -> "ServiceResult":
        return cls(
            success=False,
            message=error.message,
            error_kind=error.error_kind,
            errors=error.errors,
        )

    @classmethod
    def transient(cls, message: str) -> "ServiceResult":
        return cls(
            success=False,
            message=message,
            error_kind=TRANSIENT,
            errors={"form": "Temporarily unavailable"},
        )

    def as_dict(self) -> Dict[str, Any]:
        data = {"success": self.success, "message": self.message}
        if not self.success:
            data["error_kind"] = self.error_kind
            data["errors"] = self.errors
        data.update(self.extra)
        return data


def service_operation(failure_message: str):
    """
    Turn expected failures raised by a service function into a ServiceResult.

    Apply outside @transaction.atomic so the unit of work has already rolled
    back by the time the error is converted.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs) -> ServiceResult:
            try:
                return func(*args, **kwargs)
            except LifecycleError as e:
                logger.info("%s rejected: %s", func.__name__, e.message)
                return ServiceResult.from_error(e)
            except DatabaseError:
                logger.exception("%s failed on the database", func.__name__)
                return ServiceResult.transient(failure_message)
        return wrapper
    return decorator
