"""Promo code usability check."""

import enum
from datetime import datetime

from portal_promo.db.models.promo_code import PromoCode


class PromoValidity(enum.Enum):
    """Outcome of a validity check. Returned, never raised."""

    VALID = "valid"
    INACTIVE = "inactive"
    EXPIRED = "expired"
    NOT_YET_STARTED = "not_yet_started"
    USAGE_EXHAUSTED = "usage_exhausted"


def check_validity(promo: PromoCode, now: datetime) -> PromoValidity:
    """Check whether a promo code can be used at ``now``.

    Checks run in a fixed order so the most actionable reason wins:
    administrative flag, then the date window (inclusive days), then the
    usage cap.

    Args:
        promo: Promo code definition
        now: Point in time to evaluate; only its calendar date matters

    Returns:
        PromoValidity
    """
    if not promo.is_active:
        return PromoValidity.INACTIVE

    today = now.date()

    if today < promo.valid_from:
        return PromoValidity.NOT_YET_STARTED

    if today > promo.valid_until:
        return PromoValidity.EXPIRED

    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        return PromoValidity.USAGE_EXHAUSTED

    return PromoValidity.VALID
