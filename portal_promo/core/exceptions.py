import enum
from typing import Any


class AppException(Exception):
    """Base application exception."""

    error_code: str = "APP_ERROR"
    message: str = "An application error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.error_code = error_code or self.__class__.error_code
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(error_code={self.error_code!r}, message={self.message!r})"


class NotFoundError(AppException):
    """Resource not found."""

    error_code = "NOT_FOUND"
    message = "Resource not found"


class ValidationError(AppException):
    """Validation error carrying every violated field."""

    error_code = "VALIDATION_ERROR"
    message = "Validation failed"

    def __init__(
        self,
        errors: dict[str, str] | None = None,
        message: str | None = None,
    ) -> None:
        self.errors = dict(errors or {})
        if message is None and self.errors:
            message = "Validation failed: " + "; ".join(
                f"{field}: {reason}" for field, reason in self.errors.items()
            )
        super().__init__(message=message, details={"errors": self.errors})


class ImmutableFieldError(AppException):
    """Attempt to change a field that cannot change once set."""

    error_code = "IMMUTABLE_FIELD"
    message = "Field cannot be changed"

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(
            message=message or f"Field {field!r} cannot be changed once set",
            details={"field": field},
        )


class DuplicateError(AppException):
    """Duplicate operation (idempotency violation)."""

    error_code = "DUPLICATE"
    message = "Operation already performed"


class PlanNotApplicableError(AppException):
    """Promo code does not cover the requested plan."""

    error_code = "PLAN_NOT_APPLICABLE"
    message = "Promo code is not applicable to this plan"

    def __init__(
        self,
        plan_id: str,
        applicable_plans: list[str],
        message: str | None = None,
    ) -> None:
        self.plan_id = plan_id
        self.applicable_plans = list(applicable_plans)
        super().__init__(
            message=message or f"Promo code is not applicable to plan {plan_id!r}",
            details={"plan_id": plan_id, "applicable_plans": self.applicable_plans},
        )


class RedemptionFailure(enum.Enum):
    """Why a redemption was refused."""

    INACTIVE = "inactive"
    EXPIRED = "expired"
    NOT_YET_STARTED = "not_yet_started"
    USAGE_EXHAUSTED = "usage_exhausted"
    CONCURRENT_EXHAUSTION = "concurrent_exhaustion"


class RedemptionError(AppException):
    """Promo code could not be redeemed."""

    error_code = "REDEMPTION_FAILED"
    message = "Promo code cannot be redeemed"

    def __init__(self, reason: RedemptionFailure, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(
            message=message or f"Promo code cannot be redeemed: {reason.value}",
            error_code=f"REDEMPTION_{reason.name}",
            details={"reason": reason.value},
        )
