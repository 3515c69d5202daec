from decimal import ROUND_DOWN, Decimal

import pytest

from portal_promo.core.exceptions import PlanNotApplicableError, ValidationError
from portal_promo.db.models import DiscountType
from portal_promo.services.discount import compute_discount


def test_percentage_of_round_price(build_promo):
    assert compute_discount(build_promo(), "pemula", Decimal("100000")) == Decimal("20000")


def test_percentage_rounds_down_to_whole_unit(build_promo):
    # 20% of 33 is 6.6
    assert compute_discount(build_promo(), "pemula", Decimal("33")) == Decimal("6")


def test_percentage_with_cent_quantum(build_promo):
    discount = compute_discount(build_promo(), "pemula", Decimal("33"), quantum=Decimal("0.01"))
    assert discount == Decimal("6.60")


@pytest.mark.parametrize("value", ["0.5", "1", "12.5", "33", "99"])
@pytest.mark.parametrize("price", ["0", "1", "33", "99999", "1250000"])
def test_percentage_stays_within_price(build_promo, value, price):
    price = Decimal(price)
    promo = build_promo(discount_value=Decimal(value))

    discount = compute_discount(promo, "bisnis", price)

    assert Decimal("0") <= discount <= price
    expected = (price * Decimal(value) / 100).quantize(Decimal("1"), rounding=ROUND_DOWN)
    assert discount == expected


@pytest.mark.parametrize(
    ("value", "price", "expected"),
    [
        ("50000", "300000", "50000"),
        ("50000", "50000", "50000"),
        ("50000", "20000", "20000"),
        ("1", "0", "0"),
    ],
)
def test_fixed_is_clamped_to_price(build_promo, value, price, expected):
    promo = build_promo(discount_type=DiscountType.FIXED, discount_value=Decimal(value))
    assert compute_discount(promo, "bisnis", Decimal(price)) == Decimal(expected)


def test_plan_outside_applicable_plans(build_promo):
    promo = build_promo(applicable_plans=["pemula"])

    with pytest.raises(PlanNotApplicableError) as exc_info:
        compute_discount(promo, "bisnis", Decimal("100000"))

    assert exc_info.value.plan_id == "bisnis"
    assert exc_info.value.applicable_plans == ["pemula"]


def test_plan_match_ignores_case(build_promo):
    promo = build_promo(applicable_plans=["pemula", "bisnis"])
    assert compute_discount(promo, " Bisnis ", Decimal("100000")) == Decimal("20000")


def test_empty_plans_apply_to_all(build_promo):
    assert compute_discount(build_promo(applicable_plans=[]), "anything", Decimal("10")) == Decimal("2")


def test_negative_price_rejected(build_promo):
    with pytest.raises(ValidationError) as exc_info:
        compute_discount(build_promo(), "pemula", Decimal("-1"))

    assert "price" in exc_info.value.errors
