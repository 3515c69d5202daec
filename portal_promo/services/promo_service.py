"""Promo code service: the operations exposed to the request layer."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.services.discount import compute_discount
from portal_promo.services.dto.promo import (
    DiscountQuoteDTO,
    PromoCodeCreate,
    PromoCodeDTO,
    PromoCodeUpdate,
    PromoCodeUsageDTO,
    PromoStatusFilter,
)
from portal_promo.services.promo_registry import PromoRegistry
from portal_promo.services.usage_ledger import UsageLedger
from portal_promo.services.validity import PromoValidity, check_validity

logger = logging.getLogger(__name__)


class PromoService:
    """Service for promo code operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.registry = PromoRegistry(session)
        self.ledger = UsageLedger(session)

    async def create_promo(
        self,
        data: PromoCodeCreate,
        created_by: UUID | None = None,
    ) -> PromoCodeDTO:
        promo = await self.registry.create(data, created_by=created_by)
        return PromoCodeDTO.model_validate(promo)

    async def list_promos(self, status: PromoStatusFilter | None = None) -> list[PromoCodeDTO]:
        promos = await self.registry.list_codes(status)
        return [PromoCodeDTO.model_validate(p) for p in promos]

    async def get_promo(self, promo_id: UUID) -> PromoCodeDTO:
        """Get promo code by ID, including usage count."""
        return PromoCodeDTO.model_validate(await self.registry.get_by_id(promo_id))

    async def get_by_full_code(self, full_code: str) -> PromoCodeDTO:
        """Get promo code by the string customers enter."""
        return PromoCodeDTO.model_validate(await self.registry.get_by_full_code(full_code))

    async def update_promo(self, promo_id: UUID, data: PromoCodeUpdate) -> PromoCodeDTO:
        return PromoCodeDTO.model_validate(await self.registry.update(promo_id, data))

    async def deactivate_promo(self, promo_id: UUID) -> PromoCodeDTO:
        return PromoCodeDTO.model_validate(await self.registry.deactivate(promo_id))

    async def list_usages(self, promo_id: UUID) -> list[PromoCodeUsageDTO]:
        usages = await self.ledger.list_usages(promo_id)
        return [PromoCodeUsageDTO.model_validate(u) for u in usages]

    async def quote(
        self,
        full_code: str,
        plan_id: str,
        price: Decimal,
        now: datetime | None = None,
    ) -> DiscountQuoteDTO:
        """Preview a promo code on a plan price without redeeming it.

        An unusable code yields a quote with zero discount and the reason in
        ``validity``.

        Raises:
            NotFoundError: Unknown promo code
            PlanNotApplicableError: Code does not cover the plan
        """
        promo = await self.registry.get_by_full_code(full_code)
        price = Decimal(price)

        # Plan coverage is checked whether or not the code is usable today
        discount = compute_discount(promo, plan_id, price)
        validity = check_validity(promo, now or datetime.now(timezone.utc))
        if validity is not PromoValidity.VALID:
            discount = Decimal("0")

        return DiscountQuoteDTO(
            promo_code=PromoCodeDTO.model_validate(promo),
            plan_id=plan_id,
            validity=validity,
            original_amount=price,
            discount_amount=discount,
            final_amount=price - discount,
        )

    async def redeem(
        self,
        promo_id: UUID,
        tenant_id: UUID,
        invoice_id: UUID,
        price: Decimal,
        plan_id: str,
        now: datetime | None = None,
    ) -> PromoCodeUsageDTO:
        usage = await self.ledger.redeem(
            promo_id=promo_id,
            tenant_id=tenant_id,
            invoice_id=invoice_id,
            price=price,
            plan_id=plan_id,
            now=now,
        )
        return PromoCodeUsageDTO.model_validate(usage)

    async def redeem_code(
        self,
        full_code: str,
        tenant_id: UUID,
        invoice_id: UUID,
        price: Decimal,
        plan_id: str,
        now: datetime | None = None,
    ) -> PromoCodeUsageDTO:
        """Redeem by the string the customer entered at checkout."""
        promo = await self.registry.get_by_full_code(full_code)
        logger.debug("Resolved promo code %s -> %s", full_code, promo.id)
        return await self.redeem(
            promo_id=promo.id,
            tenant_id=tenant_id,
            invoice_id=invoice_id,
            price=price,
            plan_id=plan_id,
            now=now,
        )
