from portal_promo.db.repositories.portal_user_repository import PortalUserRepository
from portal_promo.db.repositories.promo_code_repository import PromoCodeRepository
from portal_promo.db.repositories.promo_code_usage_repository import PromoCodeUsageRepository

__all__ = [
    "PortalUserRepository",
    "PromoCodeRepository",
    "PromoCodeUsageRepository",
]
