"""Unit tests for visit pricing and the automatic discount rules."""
from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from backoffice.discounts import (
    calculate_discounts,
    has_combo,
    is_sixth_visit,
    percent_of,
    price_lines,
    summarize,
    unit_price_for,
)

MARCH = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def _service(service_id, name, single, combined=None, child=None, child_combined=None):
    return SimpleNamespace(
        service_id=service_id,
        name=name,
        single_price=single,
        combined_price=combined,
        child_price=child,
        child_combined_price=child_combined,
    )


def _customer(visit_count=0, birth_month=7):
    return SimpleNamespace(visit_count=visit_count, birth_month=birth_month)


def _types(discounts):
    return [discount["type"] for discount in discounts]


@pytest.mark.parametrize(
    "is_child, is_combined, expected",
    [
        (False, False, 10000),
        (False, True, 15000),
        (True, False, 12000),
        (True, True, 17000),
    ],
)
def test_unit_price_tiers(is_child, is_combined, expected) -> None:
    service = _service(1, "Protein", 10000, combined=15000, child=12000, child_combined=17000)

    assert unit_price_for(service, is_child, is_combined) == expected


def test_unit_price_falls_back_to_single_price() -> None:
    service = _service(1, "Kanta", 6000)

    assert unit_price_for(service, is_child=True) == 6000
    assert unit_price_for(service, is_combined=True) == 6000
    assert unit_price_for(service, is_child=True, is_combined=True) == 6000


def test_child_combined_falls_back_to_child_price() -> None:
    service = _service(1, "Shampoo", 7000, child=9000)

    assert unit_price_for(service, is_child=True, is_combined=True) == 9000


def test_price_lines_multiplies_quantity() -> None:
    services = {1: _service(1, "Twist", 7000), 2: _service(2, "Wash", 3000, child=2000)}
    items = [
        {"service_id": 1, "quantity": 2, "is_child": False, "is_combined": False},
        {"service_id": 2, "quantity": 1, "is_child": True, "is_combined": False},
    ]

    lines, total = price_lines(items, services)

    assert total == 16000
    assert [line["total_price"] for line in lines] == [14000, 2000]
    assert lines[1]["unit_price"] == 2000


def test_percent_rounds_half_up() -> None:
    assert percent_of(10000) == 2000
    assert percent_of(2) == 0
    assert percent_of(3) == 1  # 0.6
    assert percent_of(5) == 1  # 1.0
    assert percent_of(7) == 1  # 1.4
    assert percent_of(13) == 3  # 2.6
    assert percent_of(25) == 5


@pytest.mark.parametrize("visit_count, expected", [(0, False), (4, False), (5, True), (6, False), (11, True)])
def test_sixth_visit_counts_the_new_visit(visit_count, expected) -> None:
    assert is_sixth_visit(visit_count) is expected


def test_combo_needs_shampoo_and_another_service() -> None:
    assert has_combo([_service(1, "SHAMPOO", 7000), _service(2, "Twist", 7000)])
    assert not has_combo([_service(1, "Shampoo", 7000)])
    assert not has_combo([_service(1, "Shampoo", 7000), _service(2, "Dry Shampoo", 3000)])
    assert not has_combo([_service(1, "Twist", 7000), _service(2, "Cornrows", 3000)])


def test_no_discounts_for_regular_visit() -> None:
    services = [_service(1, "Twist", 5000)]

    assert calculate_discounts(_customer(visit_count=2), services, 5000, False, today=MARCH) == []


def test_all_three_discounts_stack() -> None:
    services = [_service(1, "Shampoo", 4000), _service(2, "Braids", 6000)]

    discounts = calculate_discounts(_customer(visit_count=5, birth_month=3), services, 10000, False, today=MARCH)
    totals = summarize(10000, discounts)

    assert _types(discounts) == ["SIXTH_VISIT", "BIRTHDAY_MONTH", "SERVICE_COMBO"]
    assert [discount["amount"] for discount in discounts] == [2000, 2000, 2000]
    assert totals == {
        "total_amount": 10000,
        "discount_amount": 6000,
        "final_amount": 4000,
        "loyalty_points_earned": 4,
    }


def test_birthday_discount_only_once_per_month() -> None:
    services = [_service(1, "Twist", 5000)]

    discounts = calculate_discounts(_customer(birth_month=3), services, 5000, True, today=MARCH)

    assert "BIRTHDAY_MONTH" not in _types(discounts)


def test_birthday_discount_applies_to_first_visit() -> None:
    services = [_service(1, "Twist", 5000)]

    discounts = calculate_discounts(_customer(visit_count=0, birth_month=3), services, 5000, False, today=MARCH)

    assert _types(discounts) == ["BIRTHDAY_MONTH"]
    assert discounts[0]["amount"] == 1000


def test_combo_requires_minimum_total() -> None:
    services = [_service(1, "Shampoo", 1000), _service(2, "Cornrows", 500)]

    assert calculate_discounts(_customer(), services, 1500, False, today=MARCH) == []


def test_final_amount_never_negative() -> None:
    services = [_service(1, "Shampoo", 1000), _service(2, "Cornrows", 1000)]

    discounts = calculate_discounts(_customer(visit_count=5, birth_month=3), services, 2000, False, today=MARCH)
    totals = summarize(2000, discounts)

    assert totals["discount_amount"] == 2800
    assert totals["final_amount"] == 0
    assert totals["loyalty_points_earned"] == 0


def test_loyalty_points_floor() -> None:
    assert summarize(1999, [])["loyalty_points_earned"] == 1
    assert summarize(999, [])["loyalty_points_earned"] == 0
