from portal_promo.db.models.portal_user import PortalRole, PortalUser
from portal_promo.db.models.promo_code import DiscountType, PromoCode
from portal_promo.db.models.promo_code_usage import PromoCodeUsage

__all__ = [
    "DiscountType",
    "PortalRole",
    "PortalUser",
    "PromoCode",
    "PromoCodeUsage",
]
