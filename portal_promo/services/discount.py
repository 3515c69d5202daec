"""Discount calculation."""

from decimal import ROUND_DOWN, Decimal

from portal_promo.core.config import settings
from portal_promo.core.exceptions import PlanNotApplicableError, ValidationError
from portal_promo.db.models.promo_code import DiscountType, PromoCode


def normalize_plan_id(plan_id: str) -> str:
    return plan_id.strip().lower()


def compute_discount(
    promo: PromoCode,
    plan_id: str,
    price: Decimal,
    quantum: Decimal | None = None,
) -> Decimal:
    """Calculate the discount a promo code gives on a plan price.

    Pure computation: nothing is persisted.

    Args:
        promo: Promo code definition
        plan_id: Subscription plan identifier
        price: Plan price
        quantum: Smallest currency unit (defaults to settings.currency_quantum)

    Returns:
        Discount amount, between 0 and price

    Raises:
        PlanNotApplicableError: If the code is restricted to other plans
        ValidationError: If price is negative
    """
    price = Decimal(price)
    if price < 0:
        raise ValidationError({"price": "must not be negative"})

    plans = promo.applicable_plans or []
    if plans and normalize_plan_id(plan_id) not in {normalize_plan_id(p) for p in plans}:
        raise PlanNotApplicableError(plan_id=plan_id, applicable_plans=plans)

    match promo.discount_type:
        case DiscountType.PERCENTAGE:
            discount = price * Decimal(promo.discount_value) / 100
            # No fractional minor units: round towards zero
            discount = discount.quantize(quantum or settings.currency_quantum, rounding=ROUND_DOWN)

        case DiscountType.FIXED:
            discount = Decimal(promo.discount_value)

        case _:
            raise ValidationError({"discount_type": f"unsupported discount type {promo.discount_type!r}"})

    return min(discount, price)
