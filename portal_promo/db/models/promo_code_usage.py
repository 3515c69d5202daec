"""Promo code redemption history model."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from portal_promo.db.session import Base


class PromoCodeUsage(Base):
    """One redemption of a promo code against an invoice. Append-only."""

    __tablename__ = "promo_code_usages"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
        comment="Usage UUID",
    )
    promo_code_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("promo_codes.id", ondelete="RESTRICT"),
        nullable=False,
        comment="Redeemed promo code",
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="Tenant who redeemed the code",
    )
    invoice_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        comment="Invoice the discount was applied to",
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        comment="Discount frozen at redemption time",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        comment="Redemption time",
    )

    __table_args__ = (
        CheckConstraint("discount_amount >= 0", name="discount_amount_non_negative"),
        UniqueConstraint("promo_code_id", "invoice_id", name="uq_promo_code_usages_code_invoice"),
        Index("idx_promo_code_usages_promo_code_id", "promo_code_id"),
        Index("idx_promo_code_usages_tenant_id", "tenant_id"),
    )

    def __repr__(self) -> str:
        return f"PromoCodeUsage(id={self.id}, promo_code_id={self.promo_code_id}, invoice_id={self.invoice_id})"
