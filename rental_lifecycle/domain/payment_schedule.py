# rental_lifecycle/domain/payment_schedule.py
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from ..enums import PaymentStatus, PaymentType
from ..errors import InvalidTerms

DEFAULT_UTILITIES_RATE = 0.10


@dataclass(frozen=True)
class CommercialTerms:
    monthly_rent: Optional[float]
    deposit: Optional[float] = None
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    contract_id: Optional[int] = None


@dataclass(frozen=True)
class PaymentDraft:
    type: PaymentType
    amount: float
    due_date: date
    description: str
    status: PaymentStatus = PaymentStatus.PENDING
    property_id: Optional[int] = None
    deal_id: Optional[int] = None
    contract_id: Optional[int] = None

    def as_row(self) -> dict:
        return {
            "type": self.type.value,
            "status": self.status.value,
            "amount": self.amount,
            "due_date": self.due_date,
            "description": self.description,
            "property_id": self.property_id,
            "deal_id": self.deal_id,
            "contract_id": self.contract_id,
        }


def add_months(d: date, months: int) -> date:
    """Calendar month step; Jan 31 + 1 month -> Feb 28/29 (clamped, never rolls into March)."""
    idx = d.month - 1 + int(months)
    y = d.year + idx // 12
    m = idx % 12 + 1
    last_day = calendar.monthrange(y, m)[1]
    return date(y, m, min(d.day, last_day))


def round_half_up(x: float) -> float:
    return float(Decimal(str(x)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def utilities_amount(monthly_rent: float, rate: float = DEFAULT_UTILITIES_RATE) -> float:
    return round_half_up(float(Decimal(str(monthly_rent)) * Decimal(str(rate))))


def _validate(terms: CommercialTerms, months: int) -> tuple[float, float]:
    if not isinstance(months, int) or isinstance(months, bool) or months < 1:
        raise InvalidTerms("months must be an integer >= 1", months=months)
    if terms.monthly_rent is None:
        raise InvalidTerms("monthly rent is missing", deal_id=terms.deal_id, contract_id=terms.contract_id)
    rent = float(terms.monthly_rent)
    if rent <= 0:
        raise InvalidTerms("monthly rent must be positive", monthly_rent=rent)
    deposit = float(terms.deposit or 0.0)
    if deposit < 0:
        raise InvalidTerms("deposit cannot be negative", deposit=deposit)
    return rent, deposit


def generate_schedule(
    terms: CommercialTerms,
    months: int,
    start_date: date,
    *,
    utilities_rate: float = DEFAULT_UTILITIES_RATE,
) -> list[PaymentDraft]:
    """
    Expand commercial terms into payment drafts.

    Order: one DEPOSIT (if any) dated start_date, then for every month i a
    RENT and a UTILITIES draft dated start_date + i months. UTILITIES is
    round_half_up(rent * utilities_rate) and is skipped when it rounds to 0.
    Pure: no clock reads, same input -> same output.
    """
    rent, deposit = _validate(terms, months)
    refs = {
        "property_id": terms.property_id,
        "deal_id": terms.deal_id,
        "contract_id": terms.contract_id,
    }

    out: list[PaymentDraft] = []
    if deposit > 0:
        out.append(
            PaymentDraft(
                type=PaymentType.DEPOSIT,
                amount=deposit,
                due_date=start_date,
                description="Security deposit",
                **refs,
            )
        )

    utilities = utilities_amount(rent, utilities_rate)
    for i in range(months):
        due = add_months(start_date, i)
        label = due.strftime("%B %Y")
        out.append(
            PaymentDraft(
                type=PaymentType.RENT,
                amount=rent,
                due_date=due,
                description=f"Rent for {label} (#{i + 1})",
                **refs,
            )
        )
        if utilities > 0:
            out.append(
                PaymentDraft(
                    type=PaymentType.UTILITIES,
                    amount=utilities,
                    due_date=due,
                    description=f"Utilities for {label} (#{i + 1})",
                    **refs,
                )
            )
    return out


def schedule_total(drafts: list[PaymentDraft]) -> float:
    return float(sum(d.amount for d in drafts))
