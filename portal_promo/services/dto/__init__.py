"""Service DTOs."""

from portal_promo.services.dto.promo import (
    DiscountQuoteDTO,
    PromoCodeCreate,
    PromoCodeDTO,
    PromoCodeUpdate,
    PromoCodeUsageDTO,
    PromoStatus,
    PromoStatusFilter,
)

__all__ = [
    "DiscountQuoteDTO",
    "PromoCodeCreate",
    "PromoCodeDTO",
    "PromoCodeUpdate",
    "PromoCodeUsageDTO",
    "PromoStatus",
    "PromoStatusFilter",
]
