import enum
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column

from portal_promo.db.session import Base


class DiscountType(enum.Enum):
    """Discount type for promo codes."""

    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoCode(Base):
    """Promo code definition."""

    __tablename__ = "promo_codes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Promo code UUID",
    )
    code: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="Code suffix, 3-10 uppercase alphanumerics",
    )
    referral_code: Mapped[str | None] = mapped_column(
        String(20),
        nullable=True,
        comment="Affiliate referral code prefix (immutable once set)",
    )
    discount_type: Mapped[DiscountType] = mapped_column(
        Enum(
            DiscountType,
            name="discount_type",
            create_constraint=True,
            values_callable=lambda types: [t.value for t in types],
        ),
        nullable=False,
        comment="Type of discount",
    )
    discount_value: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Discount amount (% or fixed currency amount)",
    )
    valid_from: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="First valid day (inclusive)",
    )
    valid_until: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        comment="Last valid day (inclusive)",
    )
    max_uses: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        comment="Maximum number of uses (null = unlimited)",
    )
    current_uses: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Current usage count",
    )
    applicable_plans: Mapped[list[str]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"),
        default=list,
        nullable=False,
        comment="Plan ids the code applies to (empty = all plans)",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Administrative on/off switch",
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("portal_users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Portal user who created the code",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Record creation time",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Record update time",
    )

    __table_args__ = (
        UniqueConstraint("referral_code", "code", name="uq_promo_codes_referral_code_code"),
        # NULLs are distinct in the constraint above
        Index(
            "uq_promo_codes_code_without_referral",
            "code",
            unique=True,
            postgresql_where=text("referral_code IS NULL"),
            sqlite_where=text("referral_code IS NULL"),
        ),
        CheckConstraint("discount_value > 0", name="discount_value_positive"),
        CheckConstraint("current_uses >= 0", name="current_uses_non_negative"),
        CheckConstraint(
            "max_uses IS NULL OR max_uses > 0",
            name="max_uses_positive_or_null",
        ),
        CheckConstraint("valid_from <= valid_until", name="valid_window_ordered"),
        Index("idx_promo_codes_created_at", "created_at"),
    )

    @hybrid_property
    def full_code(self) -> str:
        """Code as customers enter it: referral prefix followed by the suffix."""
        # services package imports the models
        from portal_promo.services.code_composer import compose

        return compose(self.referral_code, self.code)

    @full_code.inplace.expression
    @classmethod
    def _full_code_expression(cls):
        return func.coalesce(cls.referral_code, "") + cls.code

    def __repr__(self) -> str:
        return f"PromoCode(id={self.id}, full_code={self.full_code!r})"
