"""Promo code registry: definitions, validation and immutability rules."""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.core.exceptions import ImmutableFieldError, NotFoundError, ValidationError
from portal_promo.db.models.promo_code import DiscountType, PromoCode
from portal_promo.db.repositories.portal_user_repository import PortalUserRepository
from portal_promo.db.repositories.promo_code_repository import PromoCodeRepository
from portal_promo.services.code_composer import (
    compose,
    is_valid_suffix,
    normalize_referral_code,
    normalize_suffix,
)
from portal_promo.services.dto.promo import PromoCodeCreate, PromoCodeUpdate, PromoStatusFilter

logger = logging.getLogger(__name__)

MAX_PERCENTAGE = Decimal("99")
# discount_value is Numeric(12, 2)
MAX_DISCOUNT_VALUE = Decimal("9999999999.99")
DISCOUNT_VALUE_QUANTUM = Decimal("0.01")


class PromoRegistry:
    """Authoritative store of promo code definitions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.promo_repo = PromoCodeRepository(session)
        self.user_repo = PortalUserRepository(session)

    async def create(
        self,
        data: PromoCodeCreate,
        created_by: UUID | None = None,
    ) -> PromoCode:
        """Create a promo code.

        Args:
            data: Promo code definition
            created_by: Portal user creating the code

        Returns:
            Created PromoCode with current_uses = 0 and is_active = True

        Raises:
            ValidationError: With every violated constraint
        """
        errors: dict[str, str] = {}

        code = normalize_suffix(data.code)
        if not is_valid_suffix(code):
            errors["code"] = "must be 3-10 letters or digits"

        referral_code = normalize_referral_code(data.referral_code)
        if referral_code is not None:
            error = await self._check_referral_code(referral_code)
            if error:
                errors["referral_code"] = error

        errors.update(
            self._check_terms(
                discount_type=data.discount_type,
                discount_value=data.discount_value,
                valid_from=data.valid_from,
                valid_until=data.valid_until,
                max_uses=data.max_uses,
                current_uses=0,
            )
        )

        if created_by is not None and await self.user_repo.get_by_id(created_by) is None:
            errors["created_by"] = "unknown portal user"

        full_code = compose(referral_code, code)
        if "code" not in errors and "referral_code" not in errors:
            if await self.promo_repo.get_by_full_code(full_code) is not None:
                errors["code"] = f"promo code {full_code} already exists"

        if errors:
            raise ValidationError(errors)

        # The unique indexes settle a create racing the lookup above
        try:
            async with self.session.begin_nested():
                promo = await self.promo_repo.create(
                    PromoCode(
                        code=code,
                        referral_code=referral_code,
                        discount_type=data.discount_type,
                        discount_value=data.discount_value,
                        valid_from=data.valid_from,
                        valid_until=data.valid_until,
                        max_uses=data.max_uses,
                        current_uses=0,
                        applicable_plans=list(data.applicable_plans),
                        is_active=True,
                        created_by=created_by,
                    )
                )
        except IntegrityError as e:
            logger.warning("Promo code create lost a uniqueness race: full_code=%s", full_code)
            raise ValidationError({"code": f"promo code {full_code} already exists"}) from e

        logger.info(
            "Promo code created: id=%s, full_code=%s, type=%s, value=%s",
            promo.id,
            promo.full_code,
            promo.discount_type.value,
            promo.discount_value,
        )
        return promo

    async def update(self, promo_id: UUID, data: PromoCodeUpdate) -> PromoCode:
        """Apply a partial update.

        ``code`` never changes and ``referral_code`` changes only from unset
        to set. Cross-field rules are checked on the merged result.

        Raises:
            NotFoundError: Unknown promo code
            ImmutableFieldError: Attempt to change code or an assigned referral code
            ValidationError: With every violated constraint of the merged record
        """
        promo = await self.get_by_id(promo_id)
        fields = data.model_dump(exclude_unset=True)
        errors: dict[str, str] = {}

        if "code" in fields:
            if normalize_suffix(fields.pop("code") or "") != promo.code:
                raise ImmutableFieldError("code")

        new_referral_code: str | None = None
        if "referral_code" in fields:
            requested = normalize_referral_code(fields.pop("referral_code"))
            match promo.referral_code:
                case None:
                    if requested is not None:
                        error = await self._check_referral_code(requested)
                        if error is None:
                            full_code = compose(requested, promo.code)
                            if await self.promo_repo.get_by_full_code(full_code) is not None:
                                error = f"promo code {full_code} already exists"
                        if error:
                            errors["referral_code"] = error
                        new_referral_code = requested
                case current if requested != current:
                    raise ImmutableFieldError("referral_code")

        if "is_active" in fields and fields["is_active"] is None:
            errors["is_active"] = "must be true or false"

        merged = {
            name: fields.get(name, getattr(promo, name))
            for name in ("discount_type", "discount_value", "valid_from", "valid_until", "max_uses")
        }
        errors.update(self._check_terms(**merged, current_uses=promo.current_uses))

        if errors:
            raise ValidationError(errors)

        for name, value in fields.items():
            setattr(promo, name, value)
        if new_referral_code is not None:
            promo.referral_code = new_referral_code

        promo = await self.promo_repo.update(promo)

        logger.info(
            "Promo code updated: id=%s, fields=%s",
            promo.id,
            sorted(fields) + (["referral_code"] if new_referral_code else []),
        )
        return promo

    async def deactivate(self, promo_id: UUID) -> PromoCode:
        """Switch a promo code off. Deactivating an inactive code is a no-op."""
        promo = await self.get_by_id(promo_id)

        if not promo.is_active:
            return promo

        promo.is_active = False
        promo = await self.promo_repo.update(promo)

        logger.info("Promo code deactivated: id=%s, full_code=%s", promo.id, promo.full_code)
        return promo

    async def list_codes(self, status: PromoStatusFilter | None = None) -> list[PromoCode]:
        """List promo codes, newest first.

        ``status`` filters on the administrative flag only; the date window
        is not considered.
        """
        match status:
            case PromoStatusFilter.ACTIVE:
                return await self.promo_repo.get_all(is_active=True)
            case PromoStatusFilter.INACTIVE:
                return await self.promo_repo.get_all(is_active=False)
            case _:
                return await self.promo_repo.get_all()

    async def get_by_id(self, promo_id: UUID) -> PromoCode:
        promo = await self.promo_repo.get_by_id(promo_id)
        if promo is None:
            raise NotFoundError(
                message=f"Promo code {promo_id} not found",
                details={"promo_id": str(promo_id)},
            )
        return promo

    async def get_by_full_code(self, full_code: str) -> PromoCode:
        promo = await self.promo_repo.get_by_full_code(full_code)
        if promo is None:
            raise NotFoundError(
                message=f"Promo code {full_code!r} not found",
                details={"full_code": full_code},
            )
        return promo

    async def _check_referral_code(self, referral_code: str) -> str | None:
        """Return an error message unless the code belongs to an active affiliate."""
        owner = await self.user_repo.get_by_referral_code(referral_code)
        if owner is None:
            return f"unknown referral code {referral_code}"
        if not owner.is_active:
            return f"referral code {referral_code} belongs to an inactive affiliate"
        return None

    @staticmethod
    def _check_terms(
        discount_type: DiscountType | None,
        discount_value: Decimal | None,
        valid_from: date | None,
        valid_until: date | None,
        max_uses: int | None,
        current_uses: int,
    ) -> dict[str, str]:
        """Check discount, validity window and usage cap together."""
        errors: dict[str, str] = {}

        if discount_type is None:
            errors["discount_type"] = "is required"

        if discount_value is None:
            errors["discount_value"] = "is required"
        elif not discount_value.is_finite():
            errors["discount_value"] = "must be a number"
        elif abs(discount_value) > MAX_DISCOUNT_VALUE:
            errors["discount_value"] = f"must be at most {MAX_DISCOUNT_VALUE}"
        elif discount_value != discount_value.quantize(DISCOUNT_VALUE_QUANTUM):
            errors["discount_value"] = "must have at most 2 decimal places"
        elif discount_type is DiscountType.PERCENTAGE and not 0 < discount_value <= MAX_PERCENTAGE:
            errors["discount_value"] = "percentage discount must be greater than 0 and at most 99"
        elif discount_type is DiscountType.FIXED and discount_value <= 0:
            errors["discount_value"] = "fixed discount must be greater than 0"

        if valid_from is None:
            errors["valid_from"] = "is required"
        if valid_until is None:
            errors["valid_until"] = "is required"
        if valid_from is not None and valid_until is not None and valid_from > valid_until:
            errors["valid_until"] = "must not be before valid_from"

        if max_uses is not None:
            if max_uses <= 0:
                errors["max_uses"] = "must be a positive integer"
            elif max_uses < current_uses:
                errors["max_uses"] = f"cannot be below current uses ({current_uses})"

        return errors
