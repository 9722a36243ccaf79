"""One-pass roll-up of fee payments into dashboard analytics.

Pure and read-only: the same rows always give the same summary. Groups are emitted in
sorted key order; students keep the order of the input rows.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.core.enums import TransactionStatus
from app.core.schemas import PaymentTransactionEntry

from .schemas import (
    AnalyticsRow,
    AnalyticsSummary,
    PaymentMethodTotal,
    StatusCount,
    StatusStudents,
    StudentSummary,
)

ZERO = Decimal("0")


def _in_range(tx: PaymentTransactionEntry, start_date: Optional[date], end_date: Optional[date]) -> bool:
    day = tx.payment_date.date()
    if start_date is not None and day < start_date:
        return False
    if end_date is not None and day > end_date:
        return False
    return True


def _batch_label(row: AnalyticsRow) -> Optional[str]:
    if row.batch_start_year is None or row.batch_end_year is None:
        return None
    return f"{row.batch_start_year}-{row.batch_end_year}"


def summarize(
    rows: Iterable[AnalyticsRow],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AnalyticsSummary:
    """Aggregate fee payments.

    With a payment-date range, only fee payments holding at least one transaction in the
    range are counted, and the payment-method breakdown only counts in-range transactions.
    scholarship_applied already accumulates plan and custom scholarships, so it is summed
    as is.
    """
    ranged = start_date is not None or end_date is not None

    total_fees = ZERO
    total_collected = ZERO
    total_fines = ZERO
    number_of_fines = 0
    total_scholarships = ZERO
    total_discounts = ZERO
    method_totals: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    method_counts: Dict[str, int] = defaultdict(int)
    status_counts: Dict[str, int] = defaultdict(int)
    students: Dict[str, List[StudentSummary]] = defaultdict(list)

    for row in rows:
        transactions = row.transactions
        if ranged:
            transactions = [tx for tx in transactions if _in_range(tx, start_date, end_date)]
            if not transactions:
                continue

        total_fees += row.total_amount
        total_collected += row.amount_paid
        total_fines += row.late_fee_applied
        if row.late_fee_applied > 0:
            number_of_fines += 1
        total_scholarships += row.scholarship_applied
        total_discounts += row.discount_applied

        for tx in transactions:
            if tx.status == TransactionStatus.completed:
                method_totals[tx.payment_method.value] += tx.amount
                method_counts[tx.payment_method.value] += 1

        status = row.status.value
        status_counts[status] += 1
        students[status].append(
            StudentSummary(
                name=row.student_name,
                student_id=row.student_id,
                course=row.course_name,
                batch=_batch_label(row),
                semester=row.semester,
                section=row.section_name,
            )
        )

    return AnalyticsSummary(
        total_fees=total_fees,
        total_collected=total_collected,
        total_outstanding=total_fees - total_collected,
        total_fines=total_fines,
        number_of_fines=number_of_fines,
        total_scholarships=total_scholarships,
        total_discounts=total_discounts,
        payment_method_breakdown=[
            PaymentMethodTotal(payment_method=m, total=method_totals[m], count=method_counts[m])
            for m in sorted(method_totals)
        ],
        status_distribution=[StatusCount(status=s, count=status_counts[s]) for s in sorted(status_counts)],
        students_by_status=[StatusStudents(status=s, students=students[s]) for s in sorted(students)],
    )
