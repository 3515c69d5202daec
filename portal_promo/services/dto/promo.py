"""Promo code DTOs for service layer."""

import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, computed_field, field_validator

from portal_promo.core.config import settings
from portal_promo.db.models.promo_code import DiscountType
from portal_promo.services.code_composer import compose
from portal_promo.services.validity import PromoValidity


class PromoStatusFilter(enum.Enum):
    """Administrative flag filter for listings."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class PromoStatus(enum.Enum):
    """Admin table status of a promo code for a given day."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    UPCOMING = "upcoming"


def _split_plans(value: object) -> object:
    """Accept "pemula, bisnis" as well as ["pemula", "bisnis"]."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, (list, tuple, set, frozenset)):
        plans: list[str] = []
        for plan in value:
            plan = str(plan).strip().lower()
            if plan and plan not in plans:
                plans.append(plan)
        return plans
    return value


class PromoCodeCreate(BaseModel):
    """Input for creating a promo code.

    Only the shape is checked here; business rules are checked by the
    registry so that every violation is reported at once.
    """

    code: str
    referral_code: str | None = None
    discount_type: DiscountType
    discount_value: Decimal
    valid_from: date
    valid_until: date
    max_uses: int | None = None
    applicable_plans: list[str] = []

    @field_validator("applicable_plans", mode="before")
    @classmethod
    def normalize_plans(cls, value: object) -> object:
        return _split_plans(value)


class PromoCodeUpdate(BaseModel):
    """Partial update; only fields that were explicitly set are applied."""

    code: str | None = None
    referral_code: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    valid_from: date | None = None
    valid_until: date | None = None
    max_uses: int | None = None
    applicable_plans: list[str] | None = None
    is_active: bool | None = None

    @field_validator("applicable_plans", mode="before")
    @classmethod
    def normalize_plans(cls, value: object) -> object:
        return _split_plans(value)


def format_discount(discount_type: DiscountType, value: Decimal) -> str:
    """Format discount for display: "20%" or "Rp 50.000"."""
    match discount_type:
        case DiscountType.PERCENTAGE:
            return f"{value.normalize():f}%"
        case DiscountType.FIXED:
            whole = f"{int(value):,}".replace(",", ".")
            return f"{settings.currency_symbol} {whole}"
        case _:
            return str(value)


class PromoCodeDTO(BaseModel):
    """DTO for promo code display."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    referral_code: str | None
    discount_type: DiscountType
    discount_value: Decimal
    valid_from: date
    valid_until: date
    max_uses: int | None
    current_uses: int
    applicable_plans: list[str]
    is_active: bool
    created_by: UUID | None
    created_at: datetime
    updated_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def full_code(self) -> str:
        return compose(self.referral_code, self.code)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def discount_display(self) -> str:
        return format_discount(self.discount_type, self.discount_value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def uses_left(self) -> int | None:
        """Calculate remaining uses."""
        if self.max_uses is None:
            return None
        return max(0, self.max_uses - self.current_uses)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> PromoStatus:
        return self.status_on(datetime.now(timezone.utc).date())

    def status_on(self, day: date) -> PromoStatus:
        """Admin status for a day: inactive, expired, upcoming, then active."""
        if not self.is_active:
            return PromoStatus.INACTIVE
        if day > self.valid_until:
            return PromoStatus.EXPIRED
        if day < self.valid_from:
            return PromoStatus.UPCOMING
        return PromoStatus.ACTIVE


class PromoCodeUsageDTO(BaseModel):
    """DTO for a redemption record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    promo_code_id: UUID
    tenant_id: UUID
    invoice_id: UUID
    discount_amount: Decimal
    created_at: datetime


class DiscountQuoteDTO(BaseModel):
    """Preview of a promo code applied to a plan price."""

    promo_code: PromoCodeDTO
    plan_id: str
    validity: PromoValidity
    original_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_applicable(self) -> bool:
        return self.validity is PromoValidity.VALID
