import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Enum, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal_promo.db.session import Base


class PortalRole(enum.Enum):
    """Portal user role."""

    SUPER_ADMIN = "super_admin"
    AFFILIATOR = "affiliator"


class PortalUser(Base):
    """Portal account: administrator or affiliate partner."""

    __tablename__ = "portal_users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Portal user UUID",
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="Login email",
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Display name",
    )
    role: Mapped[PortalRole] = mapped_column(
        Enum(
            PortalRole,
            name="portal_role",
            create_constraint=True,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        default=PortalRole.AFFILIATOR,
        nullable=False,
        comment="Portal role",
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(20),
        unique=True,
        nullable=True,
        comment="Personal referral code used as promo prefix",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Account is enabled",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Record creation time",
    )

    def __repr__(self) -> str:
        return f"PortalUser(id={self.id}, referral_code={self.referral_code!r})"
