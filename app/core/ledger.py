"""Ledger recompute: derive scholarship, late fee, amount paid and status of one fee payment.

recompute() is a pure function of (state, plan, now). It never touches storage and is
safe to run any number of times: plan-derived rules already present in the payment
history are not applied again.

Duplicate detection matches a history row on type, amount and a description marker,
not on a stable rule id. Two different rules with the same amount and marker are
treated as the same rule.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from app.core.enums import FeePaymentStatus, HistoryEntryType, TransactionStatus
from app.core.schemas import (
    ZERO,
    FeePlanRules,
    LateFeeRule,
    LedgerState,
    PaymentHistoryEntry,
    PaymentTransactionEntry,
    ScholarshipGrant,
)

PLAN_SCHOLARSHIP_MARKER = "FeePlan"
CUSTOM_SCHOLARSHIP_MARKER = "Custom"
OVERDUE_LATE_FEE_MARKER = "Late fee applied due to overdue"


def plan_scholarship_description(scholarship_type: str) -> str:
    return f"{scholarship_type} Scholarship from {PLAN_SCHOLARSHIP_MARKER}"


def custom_scholarship_description(scholarship_type: Optional[str]) -> str:
    if scholarship_type:
        return f"{CUSTOM_SCHOLARSHIP_MARKER} Scholarship - {scholarship_type}"
    return f"{CUSTOM_SCHOLARSHIP_MARKER} Scholarship"


def is_recorded(
    history: Iterable[PaymentHistoryEntry],
    entry_type: HistoryEntryType,
    amount: Decimal,
    marker: str,
) -> bool:
    return any(
        h.type == entry_type and h.amount == amount and marker in (h.description or "")
        for h in history
    )


def _within(day: date, from_date: date, to_date: date) -> bool:
    return from_date <= day <= to_date


def find_scholarship_grant(
    plan: Optional[FeePlanRules], student_id: UUID, today: date
) -> Optional[ScholarshipGrant]:
    """First grant for this student whose window contains today."""
    if plan is None:
        return None
    for grant in plan.scholarships:
        if grant.student_id == student_id and _within(today, grant.from_date, grant.to_date):
            return grant
    return None


def find_late_fee_rule(plan: Optional[FeePlanRules], due_date: date) -> Optional[LateFeeRule]:
    """First late-fee schedule whose window contains the due date (not today)."""
    if plan is None:
        return None
    for rule in plan.late_fees:
        if _within(due_date, rule.from_date, rule.to_date):
            return rule
    return None


def completed_total(transactions: Iterable[PaymentTransactionEntry]) -> Decimal:
    return sum(
        (tx.amount for tx in transactions if tx.status == TransactionStatus.completed),
        ZERO,
    )


def derive_status(amount_paid: Decimal, total_due: Decimal, due_date: date, today: date) -> FeePaymentStatus:
    if amount_paid >= total_due:
        return FeePaymentStatus.fully_paid
    if amount_paid > 0:
        return FeePaymentStatus.partially_paid
    if today > due_date:
        return FeePaymentStatus.overdue
    return FeePaymentStatus.pending


def recompute(state: LedgerState, plan: Optional[FeePlanRules], now: datetime) -> LedgerState:
    """Return a new state with plan rules applied and derived fields rewritten.

    A waived fee payment keeps its status and collects no plan late fee; its amounts
    are still recomputed.
    """
    entry = state.model_copy(deep=True)
    today = now.date()
    history: List[PaymentHistoryEntry] = entry.payment_history
    scholarship_in_effect = ZERO

    grant = find_scholarship_grant(plan, entry.student_id, today)
    if grant is not None:
        scholarship_in_effect += grant.amount
        if not is_recorded(history, HistoryEntryType.scholarship, grant.amount, PLAN_SCHOLARSHIP_MARKER):
            entry.scholarship_applied += grant.amount
            history.append(
                PaymentHistoryEntry(
                    amount=grant.amount,
                    type=HistoryEntryType.scholarship,
                    description=plan_scholarship_description(grant.type),
                    date=now,
                )
            )

    custom = entry.custom_scholarship
    if custom is not None and custom.amount > 0:
        scholarship_in_effect += custom.amount
        if not is_recorded(history, HistoryEntryType.scholarship, custom.amount, CUSTOM_SCHOLARSHIP_MARKER):
            entry.scholarship_applied += custom.amount
            history.append(
                PaymentHistoryEntry(
                    amount=custom.amount,
                    type=HistoryEntryType.scholarship,
                    description=custom_scholarship_description(custom.type),
                    date=now,
                )
            )

    settled = entry.status in (FeePaymentStatus.fully_paid, FeePaymentStatus.waived)
    if today > entry.due_date and not settled:
        rule = find_late_fee_rule(plan, entry.due_date)
        if rule is not None and not is_recorded(
            history, HistoryEntryType.late_fee, rule.fine_amount, OVERDUE_LATE_FEE_MARKER
        ):
            entry.late_fee_applied += rule.fine_amount
            history.append(
                PaymentHistoryEntry(
                    amount=rule.fine_amount,
                    type=HistoryEntryType.late_fee,
                    description=OVERDUE_LATE_FEE_MARKER,
                    date=now,
                )
            )

    entry.amount_paid = completed_total(entry.transactions)
    entry.total_due = (
        entry.total_amount - scholarship_in_effect + entry.late_fee_applied - entry.discount_applied
    )
    if entry.status != FeePaymentStatus.waived:
        entry.status = derive_status(entry.amount_paid, entry.total_due, entry.due_date, today)
    return entry
