"""Repository for PromoCode model operations."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.db.models.promo_code import PromoCode


class PromoCodeRepository:
    """Repository for promo code operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, promo_id: UUID) -> PromoCode | None:
        """Get promo code by ID."""
        result = await self.session.execute(
            select(PromoCode).where(PromoCode.id == promo_id)
        )
        return result.scalar_one_or_none()

    async def get_by_full_code(self, full_code: str) -> PromoCode | None:
        """Get promo code by the composed string customers enter (case-insensitive).

        Args:
            full_code: Referral prefix + code suffix

        Returns:
            PromoCode or None if not found
        """
        result = await self.session.execute(
            select(PromoCode)
            .where(func.upper(PromoCode.full_code) == full_code.strip().upper())
            .order_by(PromoCode.created_at.asc())
            .limit(1)
        )
        return result.scalars().first()

    async def create(self, promo: PromoCode) -> PromoCode:
        """Create new promo code."""
        self.session.add(promo)
        await self.session.flush()
        await self.session.refresh(promo)
        return promo

    async def update(self, promo: PromoCode) -> PromoCode:
        """Update promo code."""
        promo.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        await self.session.refresh(promo)
        return promo

    async def get_all(self, is_active: bool | None = None) -> list[PromoCode]:
        """Get promo codes, newest first.

        Args:
            is_active: Filter by the administrative flag (None = all)
        """
        query = select(PromoCode).order_by(
            PromoCode.created_at.desc(),
            PromoCode.id.desc(),
        )

        if is_active is not None:
            query = query.where(PromoCode.is_active.is_(is_active))

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def increment_uses(self, promo_id: UUID) -> int | None:
        """Increment current_uses atomically, respecting max_uses.

        The cap check and the increment are one conditional UPDATE, so
        concurrent redemptions of the last slot cannot both succeed.

        Returns:
            New current_uses value, or None if the cap was already reached
        """
        result = await self.session.execute(
            update(PromoCode)
            .where(PromoCode.id == promo_id)
            .where(
                or_(
                    PromoCode.max_uses.is_(None),
                    PromoCode.current_uses < PromoCode.max_uses,
                )
            )
            .values(
                current_uses=PromoCode.current_uses + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .returning(PromoCode.current_uses)
            .execution_options(synchronize_session=False)
        )
        return result.scalar_one_or_none()
