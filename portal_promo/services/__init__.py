"""Business logic services."""

from portal_promo.services.promo_registry import PromoRegistry
from portal_promo.services.promo_service import PromoService
from portal_promo.services.usage_ledger import UsageLedger

__all__ = [
    "PromoRegistry",
    "PromoService",
    "UsageLedger",
]
