"""Usage ledger: promo code redemption and usage history."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.core.exceptions import DuplicateError, RedemptionError, RedemptionFailure
from portal_promo.db.models.promo_code import PromoCode
from portal_promo.db.models.promo_code_usage import PromoCodeUsage
from portal_promo.db.repositories.promo_code_repository import PromoCodeRepository
from portal_promo.db.repositories.promo_code_usage_repository import PromoCodeUsageRepository
from portal_promo.services.discount import compute_discount
from portal_promo.services.promo_registry import PromoRegistry
from portal_promo.services.validity import PromoValidity, check_validity

logger = logging.getLogger(__name__)


class UsageLedger:
    """Records redemptions and enforces the usage cap."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.registry = PromoRegistry(session)
        self.promo_repo = PromoCodeRepository(session)
        self.usage_repo = PromoCodeUsageRepository(session)

    async def redeem(
        self,
        promo_id: UUID,
        tenant_id: UUID,
        invoice_id: UUID,
        price: Decimal,
        plan_id: str,
        now: datetime | None = None,
    ) -> PromoCodeUsage:
        """Redeem a promo code against an invoice.

        The usage cap is re-checked and the counter incremented in one
        conditional UPDATE; the usage row is written in the same transaction.
        The caller commits.

        Args:
            promo_id: Promo code UUID
            tenant_id: Redeeming tenant
            invoice_id: Invoice the discount applies to
            price: Plan price before discount
            plan_id: Subscription plan identifier
            now: Redemption time (defaults to current UTC time)

        Returns:
            Created usage record with the frozen discount amount

        Raises:
            NotFoundError: Unknown promo code
            RedemptionError: Code is not usable, or the last slot was taken concurrently
            PlanNotApplicableError: Code does not cover the plan
            DuplicateError: Code was already redeemed on this invoice
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        promo = await self.registry.get_by_id(promo_id)

        validity = check_validity(promo, now)
        if validity is not PromoValidity.VALID:
            raise RedemptionError(reason=RedemptionFailure(validity.value))

        discount = compute_discount(promo, plan_id, price)

        if await self.usage_repo.get_by_invoice(promo.id, invoice_id) is not None:
            raise self._duplicate(promo, invoice_id)

        # Counter and usage row commit or roll back together
        try:
            async with self.session.begin_nested():
                new_uses = await self.promo_repo.increment_uses(promo.id)
                if new_uses is None:
                    logger.warning(
                        "Promo code usage cap reached concurrently: id=%s, invoice=%s",
                        promo.id,
                        invoice_id,
                    )
                    raise RedemptionError(reason=RedemptionFailure.CONCURRENT_EXHAUSTION)

                usage = await self.usage_repo.create(
                    PromoCodeUsage(
                        promo_code_id=promo.id,
                        tenant_id=tenant_id,
                        invoice_id=invoice_id,
                        discount_amount=discount,
                        created_at=now,
                    )
                )
        except IntegrityError as e:
            logger.warning(
                "Promo code redeemed concurrently on the same invoice: id=%s, invoice=%s",
                promo.id,
                invoice_id,
            )
            raise self._duplicate(promo, invoice_id) from e

        await self.session.refresh(promo, attribute_names=["current_uses", "updated_at"])

        logger.info(
            "Promo code redeemed: code=%s, tenant=%s, invoice=%s, discount=%s, uses=%d/%s",
            promo.full_code,
            tenant_id,
            invoice_id,
            discount,
            new_uses,
            promo.max_uses if promo.max_uses is not None else "unlimited",
        )
        return usage

    async def list_usages(self, promo_id: UUID) -> list[PromoCodeUsage]:
        """Usage history of a promo code, oldest first.

        Raises:
            NotFoundError: Unknown promo code
        """
        await self.registry.get_by_id(promo_id)
        return await self.usage_repo.get_by_promo_code(promo_id)

    @staticmethod
    def _duplicate(promo: PromoCode, invoice_id: UUID) -> DuplicateError:
        return DuplicateError(
            message=f"Promo code {promo.full_code} already redeemed on invoice {invoice_id}",
            details={"promo_id": str(promo.id), "invoice_id": str(invoice_id)},
        )
