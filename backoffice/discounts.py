"""Visit pricing and the automatic discount rules.

The pricing helpers are pure: they take service rows (or anything exposing the
same price attributes) and return plain dicts and integers, so they can be
exercised without a database. The helpers at the bottom of the module read and
write discount bookkeeping rows and expect to run inside the caller's session
transaction; they never commit.

Rules applied to every new visit:

* ``SIXTH_VISIT``: 20% off when this visit is the customer's 6th, 12th, ...
* ``BIRTHDAY_MONTH``: 20% off during the customer's birth month, once per
  calendar month.
* ``SERVICE_COMBO``: a flat 2000 off when a shampoo is combined with at least
  one other service and the bill reaches 2000.
"""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db
from .models import CustomerDiscount, DiscountRule, VisitDiscount, utc_now

PERCENT_DISCOUNT = 20
SIXTH_VISIT_INTERVAL = 6
COMBO_DISCOUNT_AMOUNT = 2000
COMBO_MINIMUM_TOTAL = 2000
COMBO_KEYWORD = "shampoo"
CURRENCY_PER_LOYALTY_POINT = 1000

DISCOUNT_DESCRIPTIONS = {
    "SIXTH_VISIT": "6th Visit Discount (20%)",
    "BIRTHDAY_MONTH": "Birthday Month Discount (20%)",
    "SERVICE_COMBO": "Shampoo + Service Combo Discount",
}


def unit_price_for(service, is_child: bool = False, is_combined: bool = False) -> int:
    """Pick the price tier for a line, falling back to ``single_price``."""
    if is_child and is_combined:
        price = service.child_combined_price or service.child_price
    elif is_child:
        price = service.child_price
    elif is_combined:
        price = service.combined_price
    else:
        price = None
    return int(price or service.single_price)


def price_lines(items: list[dict], services_by_id: dict) -> tuple[list[dict], int]:
    """Price each requested line and return ``(lines, total_amount)``.

    ``items`` are dicts with ``service_id``, ``quantity``, ``is_child`` and
    ``is_combined``. Every ``service_id`` must be present in ``services_by_id``.
    """
    lines = []
    total_amount = 0
    for item in items:
        service = services_by_id[item["service_id"]]
        unit_price = unit_price_for(service, item["is_child"], item["is_combined"])
        line_total = unit_price * item["quantity"]
        total_amount += line_total
        lines.append({
            "service_id": item["service_id"],
            "quantity": item["quantity"],
            "unit_price": unit_price,
            "total_price": line_total,
            "is_child": item["is_child"],
            "is_combined": item["is_combined"],
        })
    return lines, total_amount


def percent_of(amount: int, percent: int = PERCENT_DISCOUNT) -> int:
    """Percentage of a non-negative integer amount, rounding halves up."""
    return (amount * percent + 50) // 100


def is_sixth_visit(visit_count: int) -> bool:
    return (visit_count + 1) % SIXTH_VISIT_INTERVAL == 0


def is_birthday_month(birth_month: int | None, today: datetime) -> bool:
    return birth_month is not None and birth_month == today.month


def has_combo(services: list) -> bool:
    names = [(service.name or "").lower() for service in services]
    has_shampoo = any(COMBO_KEYWORD in name for name in names)
    has_other = any(COMBO_KEYWORD not in name for name in names)
    return has_shampoo and has_other


def calculate_discounts(
    customer,
    services: list,
    total_amount: int,
    birthday_discount_used: bool,
    today: datetime | None = None,
) -> list[dict[str, object]]:
    """Return the automatic discounts a visit qualifies for.

    ``customer`` needs ``visit_count`` and ``birth_month``; ``services`` are
    the service rows on the visit (one per line). ``birthday_discount_used``
    says whether a birthday discount was already consumed this month.
    """
    today = today or utc_now()
    discounts = []

    if is_sixth_visit(customer.visit_count or 0):
        discounts.append(_discount("SIXTH_VISIT", percent_of(total_amount)))

    if is_birthday_month(customer.birth_month, today) and not birthday_discount_used:
        discounts.append(_discount("BIRTHDAY_MONTH", percent_of(total_amount)))

    if has_combo(services) and total_amount >= COMBO_MINIMUM_TOTAL:
        discounts.append(_discount("SERVICE_COMBO", COMBO_DISCOUNT_AMOUNT))

    return discounts


def summarize(total_amount: int, discounts: list[dict]) -> dict[str, int]:
    """Fold discounts into the visit totals and loyalty points."""
    discount_amount = sum(discount["amount"] for discount in discounts)
    final_amount = max(0, total_amount - discount_amount)
    return {
        "total_amount": total_amount,
        "discount_amount": discount_amount,
        "final_amount": final_amount,
        "loyalty_points_earned": final_amount // CURRENCY_PER_LOYALTY_POINT,
    }


def _discount(discount_type: str, amount: int) -> dict[str, object]:
    return {
        "type": discount_type,
        "amount": amount,
        "description": DISCOUNT_DESCRIPTIONS[discount_type],
    }


# ---------------------------------------------------------------------------
# Database helpers
# ---------------------------------------------------------------------------

def month_start(today: datetime) -> datetime:
    return datetime(today.year, today.month, 1, tzinfo=timezone.utc)


def next_month_start(today: datetime) -> datetime:
    year, month = divmod(today.year * 12 + today.month, 12)
    return datetime(year, month + 1, 1, tzinfo=timezone.utc)


def birthday_discount_used(customer_id: int, today: datetime | None = None) -> bool:
    """True when the customer already had a birthday discount in the month of ``today``."""
    today = today or utc_now()
    usage = (
        CustomerDiscount.query.join(
            DiscountRule, DiscountRule.discount_rule_id == CustomerDiscount.discount_rule_id
        )
        .filter(
            CustomerDiscount.customer_id == customer_id,
            CustomerDiscount.used_at >= month_start(today),
            CustomerDiscount.used_at < next_month_start(today),
            DiscountRule.type == "BIRTHDAY_MONTH",
        )
        .first()
    )
    return usage is not None


def get_or_create_rule(discount_type: str, description: str) -> DiscountRule:
    """Return the active rule for an automatic discount type, creating it once."""
    rule = DiscountRule.query.filter_by(type=discount_type, is_active=True).first()
    if rule is not None:
        return rule

    name = description
    if DiscountRule.query.filter_by(name=name).first() is not None:
        # An inactive rule still owns the canonical name
        name = f"{description} ({utc_now():%Y%m%d%H%M%S})"

    is_combo = discount_type == "SERVICE_COMBO"
    rule = DiscountRule(
        name=name,
        type=discount_type,
        value=COMBO_DISCOUNT_AMOUNT if is_combo else PERCENT_DISCOUNT,
        is_percentage=not is_combo,
        description=description,
    )
    db.session.add(rule)
    db.session.flush()
    return rule


def record_discounts(visit, discounts: list[dict], record_usage: bool = True) -> None:
    """Attach discount links to ``visit`` and, optionally, log customer usage."""
    for discount in discounts:
        rule = get_or_create_rule(discount["type"], discount["description"])
        visit.discounts.append(
            VisitDiscount(discount_rule_id=rule.discount_rule_id, discount_amount=discount["amount"])
        )
        if record_usage:
            db.session.add(
                CustomerDiscount(
                    customer_id=visit.customer_id,
                    discount_rule_id=rule.discount_rule_id,
                    discount_amount=discount["amount"],
                    used_at=utc_now(),
                )
            )
