"""
Payable derivation.

A read-side projection over the payment ledger. Each record's due date
is its execution date plus ``payable_due_days`` (one calendar day by
default); a payable is overdue when it is not paid and its due date is
before today. Dates are compared at day granularity.

Settlement moves pending → partial → paid as payments are posted; a
record counts as paid once the remaining amount is within
``payment_settle_epsilon``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta

from production.errors import ValidationError
from production.models import PayableItem, PaymentRecord, PaymentStatus

DEFAULT_DUE_DAYS = 1
DEFAULT_SETTLE_EPSILON = 0.01


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def due_date_for(execution_date: date | datetime, due_days: int = DEFAULT_DUE_DAYS) -> date:
    return _as_date(execution_date) + timedelta(days=due_days)


def settlement_status(total: float, amount_paid: float, epsilon: float = DEFAULT_SETTLE_EPSILON) -> PaymentStatus:
    if total - amount_paid <= epsilon:
        return PaymentStatus.PAID
    if amount_paid > 0:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PENDING


def derive_payable(
    record: PaymentRecord,
    today: date | None = None,
    *,
    due_days: int = DEFAULT_DUE_DAYS,
) -> PayableItem:
    today = _as_date(today or date.today())
    due = due_date_for(record.date, due_days)
    is_overdue = record.status != PaymentStatus.PAID and due < today
    return PayableItem(
        id=record.id,
        op_id=record.op_id,
        partner=record.partner_name,
        service_type=record.stage,
        execution_date=_as_date(record.date),
        due_date=due,
        quantity=record.quantity_delivered,
        unit_price=record.rate_per_piece,
        total=record.total_amount,
        amount_paid=record.amount_paid,
        status=record.status,
        is_overdue=is_overdue,
        days_overdue=(today - due).days if is_overdue else 0,
        bank_account_name=record.bank_account_name,
    )


def derive_payables(
    records: Iterable[PaymentRecord],
    today: date | None = None,
    *,
    due_days: int = DEFAULT_DUE_DAYS,
) -> list[PayableItem]:
    """Project every record; overdue first, then by due date ascending."""
    items = [derive_payable(r, today, due_days=due_days) for r in records]
    items.sort(key=lambda p: (not p.is_overdue, p.due_date))
    return items


def apply_payment(
    record: PaymentRecord,
    amount: float,
    *,
    bank_account_name: str | None = None,
    epsilon: float = DEFAULT_SETTLE_EPSILON,
) -> PaymentRecord:
    """Post a payment against a ledger row and recompute its status."""
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    if record.status == PaymentStatus.PAID:
        raise ValidationError(f"Payment {record.id} is already settled")
    if amount - record.remaining_amount > epsilon:
        raise ValidationError(f"Payment of {amount:.2f} exceeds remaining {record.remaining_amount:.2f}")

    paid = round(record.amount_paid + amount, 2)
    return replace(
        record,
        amount_paid=paid,
        status=settlement_status(record.total_amount, paid, epsilon),
        bank_account_name=bank_account_name or record.bank_account_name,
    )


@dataclass(frozen=True)
class PayablesSummary:
    overdue_count: int
    overdue_amount: float
    due_today_count: int
    due_today_amount: float
    open_count: int
    open_amount: float
    paid_count: int
    paid_amount: float


def summarize_payables(payables: Iterable[PayableItem], today: date | None = None) -> PayablesSummary:
    today = _as_date(today or date.today())
    overdue = due_today = open_ = paid = 0
    overdue_amt = due_today_amt = open_amt = paid_amt = 0.0
    for p in payables:
        if p.status == PaymentStatus.PAID:
            paid += 1
            paid_amt += p.total
            continue
        open_ += 1
        open_amt += p.remaining_amount
        if p.is_overdue:
            overdue += 1
            overdue_amt += p.remaining_amount
        elif p.due_date == today:
            due_today += 1
            due_today_amt += p.remaining_amount
    return PayablesSummary(
        overdue_count=overdue,
        overdue_amount=round(overdue_amt, 2),
        due_today_count=due_today,
        due_today_amount=round(due_today_amt, 2),
        open_count=open_,
        open_amount=round(open_amt, 2),
        paid_count=paid,
        paid_amount=round(paid_amt, 2),
    )
