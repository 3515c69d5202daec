"""Tests for redemption and the usage cap."""

import asyncio
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_promo.core.exceptions import (
    DuplicateError,
    NotFoundError,
    PlanNotApplicableError,
    RedemptionError,
    RedemptionFailure,
)
from portal_promo.db.models import DiscountType
from portal_promo.services.promo_registry import PromoRegistry
from portal_promo.services.usage_ledger import UsageLedger


@pytest.fixture
def ledger(session) -> UsageLedger:
    return UsageLedger(session)


@pytest.fixture
def now(today) -> datetime:
    return datetime.combine(today, time(10, 30), tzinfo=timezone.utc)


async def create_promo(session, promo_data, **overrides):
    promo = await PromoRegistry(session).create(promo_data(**overrides))
    await session.commit()
    return promo


async def test_redeem_records_usage_and_counts(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data, max_uses=5)
    tenant_id, invoice_id = uuid4(), uuid4()

    usage = await ledger.redeem(promo.id, tenant_id, invoice_id, Decimal("100000"), "pemula", now=now)
    await session.commit()

    assert usage.promo_code_id == promo.id
    assert usage.tenant_id == tenant_id
    assert usage.invoice_id == invoice_id
    assert usage.discount_amount == Decimal("20000")
    assert promo.current_uses == 1


async def test_discount_amount_is_frozen(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data)
    await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("100000"), "pemula", now=now)
    await session.commit()

    promo.discount_value = Decimal("50")
    await session.commit()

    [usage] = await ledger.list_usages(promo.id)
    assert usage.discount_amount == Decimal("20000")


async def test_usage_count_matches_history(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data)

    for _ in range(3):
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("50000"), "pemula", now=now)
    await session.commit()

    usages = await ledger.list_usages(promo.id)
    assert len(usages) == promo.current_uses == 3
    assert await ledger.usage_repo.count_by_promo_code(promo.id) == 3


async def test_fixed_discount_clamped_to_price(ledger, session, promo_data, now):
    promo = await create_promo(
        session,
        promo_data,
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("50000"),
    )

    usage = await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("20000"), "pemula", now=now)

    assert usage.discount_amount == Decimal("20000")


async def test_naive_time_treated_as_utc(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data)

    usage = await ledger.redeem(
        promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now.replace(tzinfo=None)
    )

    assert usage.created_at.replace(tzinfo=None) == now.replace(tzinfo=None)


@pytest.mark.parametrize(
    ("overrides", "reason"),
    [
        ({"valid_from_days": -10, "valid_until_days": -1}, RedemptionFailure.EXPIRED),
        ({"valid_from_days": 1, "valid_until_days": 10}, RedemptionFailure.NOT_YET_STARTED),
    ],
)
async def test_refuses_outside_window(ledger, session, promo_data, today, now, overrides, reason):
    promo = await create_promo(
        session,
        promo_data,
        valid_from=today + timedelta(days=overrides["valid_from_days"]),
        valid_until=today + timedelta(days=overrides["valid_until_days"]),
    )

    with pytest.raises(RedemptionError) as exc_info:
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)

    assert exc_info.value.reason is reason
    assert exc_info.value.error_code == f"REDEMPTION_{reason.name}"


async def test_refuses_inactive(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data)
    await PromoRegistry(session).deactivate(promo.id)
    await session.commit()

    with pytest.raises(RedemptionError) as exc_info:
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)

    assert exc_info.value.reason is RedemptionFailure.INACTIVE


async def test_refuses_when_cap_reached(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data, max_uses=2)
    for _ in range(2):
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)
    await session.commit()

    with pytest.raises(RedemptionError) as exc_info:
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)

    assert exc_info.value.reason is RedemptionFailure.USAGE_EXHAUSTED
    assert promo.current_uses == 2


async def test_plan_not_applicable_records_nothing(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data, applicable_plans=["pemula"])

    with pytest.raises(PlanNotApplicableError):
        await ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "bisnis", now=now)

    assert await ledger.list_usages(promo.id) == []
    assert promo.current_uses == 0


async def test_same_invoice_twice(ledger, session, promo_data, now):
    promo = await create_promo(session, promo_data)
    invoice_id = uuid4()
    await ledger.redeem(promo.id, uuid4(), invoice_id, Decimal("1000"), "pemula", now=now)
    await session.commit()

    with pytest.raises(DuplicateError):
        await ledger.redeem(promo.id, uuid4(), invoice_id, Decimal("1000"), "pemula", now=now)

    assert promo.current_uses == 1


async def test_unknown_promo(ledger, now):
    with pytest.raises(NotFoundError):
        await ledger.redeem(uuid4(), uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)


async def test_list_usages_unknown_promo(ledger):
    with pytest.raises(NotFoundError):
        await ledger.list_usages(uuid4())


async def test_last_slot_taken_by_another_session(session_factory, promo_data, now):
    async with session_factory() as setup:
        promo = await create_promo(setup, promo_data, max_uses=1)

    async with session_factory() as slow, session_factory() as fast:
        slow_ledger = UsageLedger(slow)
        # held so the identity map keeps the pre-redemption state
        stale = await slow_ledger.registry.get_by_id(promo.id)
        assert stale.current_uses == 0

        await UsageLedger(fast).redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)
        await fast.commit()

        with pytest.raises(RedemptionError) as exc_info:
            await slow_ledger.redeem(promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now)
        await slow.rollback()

    assert exc_info.value.reason is RedemptionFailure.CONCURRENT_EXHAUSTION

    async with session_factory() as check:
        stored = await PromoRegistry(check).get_by_id(promo.id)
        assert stored.current_uses == 1
        assert len(await UsageLedger(check).list_usages(promo.id)) == 1


async def test_concurrent_redemptions_never_exceed_cap(session_factory, promo_data, now):
    async with session_factory() as setup:
        promo = await create_promo(setup, promo_data, max_uses=3)

    async def attempt():
        async with session_factory() as session:
            try:
                usage = await UsageLedger(session).redeem(
                    promo.id, uuid4(), uuid4(), Decimal("1000"), "pemula", now=now
                )
            except RedemptionError:
                await session.rollback()
                raise
            await session.commit()
            return usage

    results = await asyncio.gather(*(attempt() for _ in range(8)), return_exceptions=True)

    succeeded = [r for r in results if not isinstance(r, BaseException)]
    failed = [r for r in results if isinstance(r, BaseException)]
    assert len(succeeded) == 3
    assert len(failed) == 5
    assert all(isinstance(e, RedemptionError) for e in failed)
    assert {e.reason for e in failed} <= {
        RedemptionFailure.USAGE_EXHAUSTED,
        RedemptionFailure.CONCURRENT_EXHAUSTION,
    }

    async with session_factory() as check:
        stored = await PromoRegistry(check).get_by_id(promo.id)
        assert stored.current_uses == 3
        assert len(await UsageLedger(check).list_usages(promo.id)) == 3


async def test_same_invoice_racing_lookup(ledger, session, promo_data, now, monkeypatch):
    async def not_redeemed(promo_code_id, invoice_id):
        return None

    promo = await create_promo(session, promo_data, max_uses=5)
    invoice_id = uuid4()
    await ledger.redeem(promo.id, uuid4(), invoice_id, Decimal("1000"), "pemula", now=now)
    await session.commit()
    # another request redeemed the invoice between lookup and insert
    monkeypatch.setattr(ledger.usage_repo, "get_by_invoice", not_redeemed)

    with pytest.raises(DuplicateError):
        await ledger.redeem(promo.id, uuid4(), invoice_id, Decimal("1000"), "pemula", now=now)

    await session.refresh(promo)
    assert promo.current_uses == 1
    assert await ledger.usage_repo.count_by_promo_code(promo.id) == 1
