"""Pytest fixtures: a fresh SQLite database per test."""

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from portal_promo.db.models import DiscountType, PortalRole, PortalUser, PromoCode
from portal_promo.db.repositories import PortalUserRepository
from portal_promo.db.session import build_engine, build_session_factory, init_models
from portal_promo.services.dto import PromoCodeCreate


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed database so concurrent sessions use separate connections."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'promo.db'}", echo=False)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture
def today() -> date:
    return date.today()


@pytest_asyncio.fixture
async def affiliate(session) -> PortalUser:
    """Active affiliator owning referral code AB12."""
    user = await PortalUserRepository(session).create(
        PortalUser(
            email="ayu@example.com",
            name="Ayu Lestari",
            role=PortalRole.AFFILIATOR,
            referral_code="AB12",
            is_active=True,
        )
    )
    await session.commit()
    return user


@pytest_asyncio.fixture
async def admin(session) -> PortalUser:
    user = await PortalUserRepository(session).create(
        PortalUser(
            email="admin@example.com",
            name="Admin",
            role=PortalRole.SUPER_ADMIN,
        )
    )
    await session.commit()
    return user


@pytest.fixture
def promo_data(today) -> Callable[..., PromoCodeCreate]:
    """Build a create payload: LAUNCH, 20% off, valid yesterday..tomorrow."""

    def factory(**overrides) -> PromoCodeCreate:
        fields = {
            "code": "LAUNCH",
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("20"),
            "valid_from": today - timedelta(days=1),
            "valid_until": today + timedelta(days=1),
        }
        fields.update(overrides)
        return PromoCodeCreate(**fields)

    return factory


@pytest.fixture
def build_promo(today) -> Callable[..., PromoCode]:
    """Build an unsaved PromoCode for pure computations."""

    def factory(**overrides) -> PromoCode:
        fields = {
            "code": "LAUNCH",
            "referral_code": None,
            "discount_type": DiscountType.PERCENTAGE,
            "discount_value": Decimal("20"),
            "valid_from": today - timedelta(days=1),
            "valid_until": today + timedelta(days=1),
            "max_uses": None,
            "current_uses": 0,
            "applicable_plans": [],
            "is_active": True,
        }
        fields.update(overrides)
        return PromoCode(**fields)

    return factory
