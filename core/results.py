"""
Structured results for the ordering services.

Services raise ``OrderingError`` subclasses internally so that an enclosing
``transaction.atomic`` block rolls back, and every public operation converts
them into a ``Result`` before returning. Callers inspect ``result.ok`` and
``result.error.kind`` instead of catching exceptions.
"""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    NOT_FOUND = "not_found"
    PRICE_MISMATCH = "price_mismatch"
    PRICE_VALIDATION_FAILED = "price_validation_failed"
    TOTAL_MISMATCH = "total_mismatch"
    INVALID_SCHEDULE = "invalid_schedule"
    INVALID_TRANSITION = "invalid_transition"
    NOT_CANCELLABLE = "not_cancellable"
    CANCELLATION_WINDOW_EXPIRED = "cancellation_window_expired"
    COUPON_INVALID = "coupon_invalid"
    REFUND_FAILED = "refund_failed"
    DUPLICATE_ORDER = "duplicate_order"
    UPSTREAM_TIMEOUT = "upstream_timeout"


class OrderingError(Exception):
    """Base class for business and infrastructure failures raised by services."""

    kind: ErrorKind = ErrorKind.VALIDATION
    default_message = "Request could not be processed"

    def __init__(self, message: str | None = None, *, field: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.field = field
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {
            "code": self.kind.value,
            "message": self.message,
            "field": self.field,
            "details": self.details,
        }


class ValidationFailed(OrderingError):
    kind = ErrorKind.VALIDATION
    default_message = "Invalid input"


class NotFound(OrderingError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class PriceMismatch(OrderingError):
    kind = ErrorKind.PRICE_MISMATCH
    default_message = "Price has changed. Please refresh and try again."


class PriceValidationFailed(OrderingError):
    kind = ErrorKind.PRICE_VALIDATION_FAILED
    default_message = "Some items have changed. Please refresh your cart."


class TotalMismatch(OrderingError):
    kind = ErrorKind.TOTAL_MISMATCH
    default_message = "Order total mismatch. Please refresh and try again."


class InvalidSchedule(OrderingError):
    kind = ErrorKind.INVALID_SCHEDULE
    default_message = "Scheduled time is not valid"


class InvalidTransition(OrderingError):
    kind = ErrorKind.INVALID_TRANSITION
    default_message = "Invalid status transition"

    def __init__(self, current: str, requested: str, message: str | None = None):
        super().__init__(
            message or f"Invalid transition from {current} to {requested}",
            field="status",
            details={"current_status": current, "requested_status": requested},
        )
        self.current = current
        self.requested = requested


class NotCancellable(OrderingError):
    kind = ErrorKind.NOT_CANCELLABLE
    default_message = "Order cannot be cancelled"


class CancellationWindowExpired(OrderingError):
    kind = ErrorKind.CANCELLATION_WINDOW_EXPIRED
    default_message = "Cancellation window has expired"


class CouponInvalid(OrderingError):
    kind = ErrorKind.COUPON_INVALID
    default_message = "Coupon is not valid"


class RefundFailed(OrderingError):
    kind = ErrorKind.REFUND_FAILED
    default_message = "Refund could not be issued. Please contact support."


class DuplicateOrder(OrderingError):
    kind = ErrorKind.DUPLICATE_ORDER
    default_message = "Order already exists for this idempotency key"


class UpstreamTimeout(OrderingError):
    kind = ErrorKind.UPSTREAM_TIMEOUT
    default_message = "A dependent service did not respond in time"


@dataclass(frozen=True)
class Result:
    value: Any = None
    error: Optional[OrderingError] = None
    meta: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def success(cls, value: Any = None, **meta) -> "Result":
        return cls(value=value, meta=meta)

    @classmethod
    def failure(cls, error: OrderingError) -> "Result":
        return cls(error=error)

    def unwrap(self) -> Any:
        """Return the value or re-raise the carried error (test and task helper)."""
        if self.error is not None:
            raise self.error
        return self.value


def returns_result(func: Callable[..., Any]) -> Callable[..., Result]:
    """Wrap a service method so ``OrderingError`` becomes ``Result.failure``.

    A method that already returns a ``Result`` is passed through untouched.
    Anything that is not an ``OrderingError`` (programmer errors) propagates.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Result:
        try:
            value = func(*args, **kwargs)
        except OrderingError as exc:
            logger.info("%s failed: %s (%s)", func.__qualname__, exc.message, exc.kind.value)
            return Result.failure(exc)
        if isinstance(value, Result):
            return value
        return Result.success(value)

    return wrapper


ERROR_CLASSES = {cls.kind: cls for cls in OrderingError.__subclasses__()}


def error_from_dict(data: dict) -> OrderingError:
    """Rebuild an error serialised with ``OrderingError.to_dict`` (used for replays)."""
    try:
        cls = ERROR_CLASSES.get(ErrorKind(data.get("code")), OrderingError)
    except ValueError:
        cls = OrderingError
    error = cls.__new__(cls)
    OrderingError.__init__(error, data.get("message"), field=data.get("field"), details=data.get("details"))
    return error
