"""Repository for PromoCodeUsage model operations."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.db.models.promo_code_usage import PromoCodeUsage


class PromoCodeUsageRepository:
    """Repository for promo code usage records."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, usage: PromoCodeUsage) -> PromoCodeUsage:
        """Append a usage record.

        Args:
            usage: PromoCodeUsage instance to create

        Returns:
            Created usage record
        """
        self.session.add(usage)
        await self.session.flush()
        await self.session.refresh(usage)
        return usage

    async def get_by_invoice(self, promo_code_id: UUID, invoice_id: UUID) -> PromoCodeUsage | None:
        """Get the usage of a promo code on one invoice, if any."""
        result = await self.session.execute(
            select(PromoCodeUsage)
            .where(PromoCodeUsage.promo_code_id == promo_code_id)
            .where(PromoCodeUsage.invoice_id == invoice_id)
        )
        return result.scalar_one_or_none()

    async def get_by_promo_code(self, promo_code_id: UUID) -> list[PromoCodeUsage]:
        """Get all usages of a promo code, oldest first."""
        result = await self.session.execute(
            select(PromoCodeUsage)
            .where(PromoCodeUsage.promo_code_id == promo_code_id)
            .order_by(PromoCodeUsage.created_at.asc(), PromoCodeUsage.id.asc())
        )
        return list(result.scalars().all())

    async def count_by_promo_code(self, promo_code_id: UUID) -> int:
        """Count usage records of a promo code."""
        result = await self.session.execute(
            select(func.count(PromoCodeUsage.id))
            .where(PromoCodeUsage.promo_code_id == promo_code_id)
        )
        return result.scalar_one()
