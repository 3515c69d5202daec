"""Initial migration with portal users, promo codes and their usages.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

portal_role = sa.Enum("super_admin", "affiliator", name="portal_role", create_constraint=True)
discount_type = sa.Enum("percentage", "fixed", name="discount_type", create_constraint=True)


def upgrade() -> None:
    # Create portal_users table
    op.create_table(
        "portal_users",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Portal user UUID"),
        sa.Column("email", sa.String(255), nullable=False, comment="Login email"),
        sa.Column("name", sa.String(255), nullable=False, comment="Display name"),
        sa.Column("role", portal_role, nullable=False, comment="Portal role"),
        sa.Column("referral_code", sa.String(20), nullable=True, comment="Personal referral code used as promo prefix"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Account is enabled"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Record creation time"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("referral_code"),
    )

    # Create promo_codes table
    op.create_table(
        "promo_codes",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Promo code UUID"),
        sa.Column("code", sa.String(10), nullable=False, comment="Code suffix, 3-10 uppercase alphanumerics"),
        sa.Column("referral_code", sa.String(20), nullable=True, comment="Affiliate referral code prefix (immutable once set)"),
        sa.Column("discount_type", discount_type, nullable=False, comment="Type of discount"),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False, comment="Discount amount (% or fixed currency amount)"),
        sa.Column("valid_from", sa.Date(), nullable=False, comment="First valid day (inclusive)"),
        sa.Column("valid_until", sa.Date(), nullable=False, comment="Last valid day (inclusive)"),
        sa.Column("max_uses", sa.Integer(), nullable=True, comment="Maximum number of uses (null = unlimited)"),
        sa.Column("current_uses", sa.Integer(), nullable=False, comment="Current usage count"),
        sa.Column(
            "applicable_plans",
            sa.JSON().with_variant(postgresql.JSONB(), "postgresql"),
            nullable=False,
            comment="Plan ids the code applies to (empty = all plans)",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Administrative on/off switch"),
        sa.Column("created_by", sa.Uuid(), nullable=True, comment="Portal user who created the code"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Record creation time"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="Record update time"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["created_by"], ["portal_users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("referral_code", "code", name="uq_promo_codes_referral_code_code"),
        sa.CheckConstraint("discount_value > 0", name="discount_value_positive"),
        sa.CheckConstraint("current_uses >= 0", name="current_uses_non_negative"),
        sa.CheckConstraint("max_uses IS NULL OR max_uses > 0", name="max_uses_positive_or_null"),
        sa.CheckConstraint("valid_from <= valid_until", name="valid_window_ordered"),
    )

    # Create indexes for promo_codes
    op.create_index(
        "uq_promo_codes_code_without_referral",
        "promo_codes",
        ["code"],
        unique=True,
        postgresql_where=sa.text("referral_code IS NULL"),
        sqlite_where=sa.text("referral_code IS NULL"),
    )
    op.create_index("idx_promo_codes_created_at", "promo_codes", ["created_at"])

    # Create promo_code_usages table
    op.create_table(
        "promo_code_usages",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Usage UUID"),
        sa.Column("promo_code_id", sa.Uuid(), nullable=False, comment="Redeemed promo code"),
        sa.Column("tenant_id", sa.Uuid(), nullable=False, comment="Tenant who redeemed the code"),
        sa.Column("invoice_id", sa.Uuid(), nullable=False, comment="Invoice the discount was applied to"),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, comment="Discount frozen at redemption time"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Redemption time"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["promo_code_id"], ["promo_codes.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("promo_code_id", "invoice_id", name="uq_promo_code_usages_code_invoice"),
        sa.CheckConstraint("discount_amount >= 0", name="discount_amount_non_negative"),
    )

    # Create indexes for promo_code_usages
    op.create_index("idx_promo_code_usages_promo_code_id", "promo_code_usages", ["promo_code_id"])
    op.create_index("idx_promo_code_usages_tenant_id", "promo_code_usages", ["tenant_id"])


def downgrade() -> None:
    # Drop tables in reverse order of creation
    op.drop_table("promo_code_usages")
    op.drop_table("promo_codes")
    op.drop_table("portal_users")

    # Drop ENUM types (no-op outside PostgreSQL)
    bind = op.get_bind()
    discount_type.drop(bind, checkfirst=True)
    portal_role.drop(bind, checkfirst=True)
