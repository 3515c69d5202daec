from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from portal_promo.core.exceptions import NotFoundError, PlanNotApplicableError, RedemptionError
from portal_promo.db.models import DiscountType
from portal_promo.services.dto import PromoCodeUpdate
from portal_promo.services.dto.promo import PromoStatus, PromoStatusFilter, format_discount
from portal_promo.services.promo_service import PromoService
from portal_promo.services.validity import PromoValidity


@pytest.fixture
def service(session) -> PromoService:
    return PromoService(session)


@pytest.fixture
def now(today) -> datetime:
    return datetime.combine(today, time(9, 0), tzinfo=timezone.utc)


async def test_create_returns_dto(service, promo_data, affiliate):
    promo = await service.create_promo(
        promo_data(
            code="sale",
            referral_code="AB12",
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("50000"),
            max_uses=10,
        )
    )

    assert promo.full_code == "AB12SALE"
    assert promo.discount_display == "Rp 50.000"
    assert promo.uses_left == 10
    assert promo.status is PromoStatus.ACTIVE


async def test_get_and_list(service, promo_data):
    created = await service.create_promo(promo_data())

    assert (await service.get_promo(created.id)).id == created.id
    assert (await service.get_by_full_code("launch")).id == created.id
    assert [p.id for p in await service.list_promos(PromoStatusFilter.ACTIVE)] == [created.id]
    assert await service.list_promos(PromoStatusFilter.INACTIVE) == []


async def test_get_unknown(service):
    with pytest.raises(NotFoundError):
        await service.get_promo(uuid4())


async def test_update_and_deactivate(service, promo_data):
    created = await service.create_promo(promo_data())

    updated = await service.update_promo(created.id, PromoCodeUpdate(applicable_plans="bisnis"))
    deactivated = await service.deactivate_promo(created.id)

    assert updated.applicable_plans == ["bisnis"]
    assert deactivated.is_active is False
    assert deactivated.status is PromoStatus.INACTIVE


async def test_quote_valid_code(service, promo_data, now):
    await service.create_promo(promo_data(applicable_plans=["pemula"]))

    quote = await service.quote("LAUNCH", "pemula", Decimal("100000"), now=now)

    assert quote.validity is PromoValidity.VALID
    assert quote.is_applicable is True
    assert quote.discount_amount == Decimal("20000")
    assert quote.final_amount == Decimal("80000")


async def test_quote_does_not_count_usage(service, promo_data, now):
    created = await service.create_promo(promo_data(max_uses=1))

    await service.quote("LAUNCH", "pemula", Decimal("100000"), now=now)

    assert (await service.get_promo(created.id)).current_uses == 0


async def test_quote_expired_code(service, promo_data, today, now):
    await service.create_promo(
        promo_data(valid_from=today - timedelta(days=10), valid_until=today - timedelta(days=1))
    )

    quote = await service.quote("LAUNCH", "pemula", Decimal("100000"), now=now)

    assert quote.validity is PromoValidity.EXPIRED
    assert quote.is_applicable is False
    assert quote.discount_amount == Decimal("0")
    assert quote.final_amount == Decimal("100000")


async def test_quote_other_plan(service, promo_data, now):
    await service.create_promo(promo_data(applicable_plans=["pemula"]))

    with pytest.raises(PlanNotApplicableError):
        await service.quote("LAUNCH", "bisnis", Decimal("100000"), now=now)


async def test_redeem_code_by_full_code(service, session, promo_data, affiliate, now):
    created = await service.create_promo(promo_data(code="SALE", referral_code="AB12", max_uses=1))
    await session.commit()

    usage = await service.redeem_code("ab12sale", uuid4(), uuid4(), Decimal("100000"), "pemula", now=now)
    await session.commit()

    assert usage.promo_code_id == created.id
    assert usage.discount_amount == Decimal("20000")

    promo = await service.get_promo(created.id)
    assert promo.current_uses == 1
    assert promo.uses_left == 0

    [history] = await service.list_usages(created.id)
    assert history.id == usage.id

    with pytest.raises(RedemptionError):
        await service.redeem_code("AB12SALE", uuid4(), uuid4(), Decimal("100000"), "pemula", now=now)


@pytest.mark.parametrize(
    ("discount_type", "value", "expected"),
    [
        (DiscountType.PERCENTAGE, Decimal("20"), "20%"),
        (DiscountType.PERCENTAGE, Decimal("12.50"), "12.5%"),
        (DiscountType.FIXED, Decimal("50000"), "Rp 50.000"),
        (DiscountType.FIXED, Decimal("1250000.00"), "Rp 1.250.000"),
    ],
)
def test_format_discount(discount_type, value, expected):
    assert format_discount(discount_type, value) == expected


async def test_status_for_day(service, promo_data):
    created = await service.create_promo(
        promo_data(valid_from=date(2026, 1, 1), valid_until=date(2026, 1, 31))
    )

    assert created.status_on(date(2025, 12, 31)) is PromoStatus.UPCOMING
    assert created.status_on(date(2026, 1, 15)) is PromoStatus.ACTIVE
    assert created.status_on(date(2026, 2, 1)) is PromoStatus.EXPIRED


async def test_quote_checks_plan_before_validity(service, promo_data, today, now):
    await service.create_promo(
        promo_data(
            valid_from=today - timedelta(days=10),
            valid_until=today - timedelta(days=1),
            applicable_plans=["pemula"],
        )
    )

    with pytest.raises(PlanNotApplicableError):
        await service.quote("LAUNCH", "bisnis", Decimal("100000"), now=now)


class FrozenClock(datetime):
    """Just past midnight UTC on the day after the code below ends."""

    @classmethod
    def now(cls, tz=None):
        moment = datetime(2026, 2, 1, 0, 30, tzinfo=timezone.utc)
        return moment.astimezone(tz) if tz is not None else moment.replace(tzinfo=None)


async def test_status_follows_utc_date(service, promo_data, monkeypatch):
    created = await service.create_promo(
        promo_data(valid_from=date(2026, 1, 1), valid_until=date(2026, 1, 31))
    )
    monkeypatch.setattr("portal_promo.services.dto.promo.datetime", FrozenClock)

    assert created.status is PromoStatus.EXPIRED
