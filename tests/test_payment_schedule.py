from __future__ import annotations

from datetime import date

import pytest

from rental_lifecycle.domain.payment_schedule import (
    CommercialTerms,
    add_months,
    generate_schedule,
    round_half_up,
    schedule_total,
    utilities_amount,
)
from rental_lifecycle.enums import PaymentStatus, PaymentType
from rental_lifecycle.errors import InvalidTerms


def test_two_month_schedule_is_exactly_five_records():
    terms = CommercialTerms(monthly_rent=45000, deposit=45000, deal_id=7, property_id=3)
    drafts = generate_schedule(terms, 2, date(2024, 1, 1))

    assert [(d.type, d.amount, d.due_date) for d in drafts] == [
        (PaymentType.DEPOSIT, 45000.0, date(2024, 1, 1)),
        (PaymentType.RENT, 45000.0, date(2024, 1, 1)),
        (PaymentType.UTILITIES, 4500.0, date(2024, 1, 1)),
        (PaymentType.RENT, 45000.0, date(2024, 2, 1)),
        (PaymentType.UTILITIES, 4500.0, date(2024, 2, 1)),
    ]
    assert all(d.status == PaymentStatus.PENDING for d in drafts)
    assert all(d.deal_id == 7 and d.property_id == 3 and d.contract_id is None for d in drafts)
    assert schedule_total(drafts) == 45000 * 3 + 4500 * 2


def test_generation_is_deterministic():
    terms = CommercialTerms(monthly_rent=1234.5, deposit=100)
    assert generate_schedule(terms, 6, date(2024, 5, 31)) == generate_schedule(terms, 6, date(2024, 5, 31))


def test_no_deposit_record_when_deposit_missing_or_zero():
    for deposit in (None, 0):
        drafts = generate_schedule(CommercialTerms(monthly_rent=1000, deposit=deposit), 1, date(2024, 1, 1))
        assert [d.type for d in drafts] == [PaymentType.RENT, PaymentType.UTILITIES]


def test_month_end_start_dates_clamp():
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 1, 31), 2) == date(2024, 3, 31)
    assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    drafts = generate_schedule(CommercialTerms(monthly_rent=1000), 3, date(2024, 1, 31))
    rent_dues = [d.due_date for d in drafts if d.type == PaymentType.RENT]
    assert rent_dues == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]


def test_utilities_round_half_up():
    assert round_half_up(2.5) == 3.0
    assert round_half_up(3.5) == 4.0
    assert utilities_amount(1005) == 101.0
    assert utilities_amount(1004) == 100.0


def test_utilities_omitted_when_they_round_to_zero():
    drafts = generate_schedule(CommercialTerms(monthly_rent=4), 1, date(2024, 1, 1))
    assert [d.type for d in drafts] == [PaymentType.RENT]


def test_descriptions_name_the_month():
    drafts = generate_schedule(CommercialTerms(monthly_rent=1000), 1, date(2024, 3, 1))
    assert drafts[0].description == "Rent for March 2024 (#1)"


@pytest.mark.parametrize(
    "terms,months",
    [
        (CommercialTerms(monthly_rent=1000), 0),
        (CommercialTerms(monthly_rent=1000), -1),
        (CommercialTerms(monthly_rent=None), 1),
        (CommercialTerms(monthly_rent=0), 1),
        (CommercialTerms(monthly_rent=1000, deposit=-5), 1),
    ],
)
def test_invalid_terms(terms, months):
    with pytest.raises(InvalidTerms):
        generate_schedule(terms, months, date(2024, 1, 1))
