from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.db.models.portal_user import PortalUser


class PortalUserRepository:
    """Repository for PortalUser model operations."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, user_id: UUID) -> PortalUser | None:
        """Get portal user by ID."""
        result = await self.session.execute(
            select(PortalUser).where(PortalUser.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_by_referral_code(self, referral_code: str) -> PortalUser | None:
        """Get portal user owning a referral code (case-insensitive)."""
        result = await self.session.execute(
            select(PortalUser).where(
                func.upper(PortalUser.referral_code) == referral_code.strip().upper()
            )
        )
        return result.scalar_one_or_none()

    async def create(self, user: PortalUser) -> PortalUser:
        """Create new portal user."""
        self.session.add(user)
        await self.session.flush()
        await self.session.refresh(user)
        return user
