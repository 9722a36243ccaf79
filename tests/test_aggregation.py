"""Unit tests for the analytics roll-up and CSV export."""

import csv
import io
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

from app.api.v1.fee_summary.aggregation import summarize
from app.api.v1.fee_summary.export import EXPORT_FIELDS, MISSING, build_export_rows, export_filename, render_csv
from app.api.v1.fee_summary.schemas import AnalyticsRow
from app.core.enums import FeePaymentStatus, PaymentMethod, TransactionStatus
from app.core.schemas import PaymentTransactionEntry


def _tx(amount: str, method: PaymentMethod, day: date, status: TransactionStatus = TransactionStatus.completed):
    return PaymentTransactionEntry(
        transaction_id=str(uuid.uuid4()),
        amount=Decimal(amount),
        payment_method=method,
        status=status,
        payment_date=datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc),
    )


def _row(status: FeePaymentStatus, total: str, paid: str, transactions=(), **overrides) -> AnalyticsRow:
    values = {
        "status": status,
        "total_amount": Decimal(total),
        "amount_paid": Decimal(paid),
        "late_fee_applied": Decimal("0"),
        "scholarship_applied": Decimal("0"),
        "discount_applied": Decimal("0"),
        "transactions": list(transactions),
        "student_id": uuid.uuid4(),
        "student_name": "Asha Rao",
        "semester": 1,
        "course_name": "BTech",
        "batch_start_year": 2023,
        "batch_end_year": 2027,
        "section_name": "A",
    }
    values.update(overrides)
    return AnalyticsRow(**values)


def _two_entries():
    paid = _row(
        FeePaymentStatus.fully_paid,
        "10000",
        "10500",
        [_tx("10500", PaymentMethod.UPI, date(2024, 2, 1))],
        late_fee_applied=Decimal("500"),
    )
    overdue = _row(FeePaymentStatus.overdue, "5000", "0", student_name="Vikram Shah")
    return [paid, overdue]


def test_totals_and_status_breakdown() -> None:
    summary = summarize(_two_entries())
    assert summary.total_fees == Decimal("15000")
    assert summary.total_collected == Decimal("10500")
    assert summary.total_outstanding == Decimal("4500")
    assert {s.status: s.count for s in summary.status_distribution} == {"fully_paid": 1, "overdue": 1}
    assert summary.total_fines == Decimal("500")
    assert summary.number_of_fines == 1


def test_payment_method_breakdown_counts_completed_only() -> None:
    day = date(2024, 2, 1)
    row = _row(
        FeePaymentStatus.partially_paid,
        "10000",
        "3500",
        [
            _tx("3000", PaymentMethod.UPI, day),
            _tx("500", PaymentMethod.CASH, day),
            _tx("900", PaymentMethod.UPI, day, TransactionStatus.failed),
            _tx("200", PaymentMethod.CASH, day, TransactionStatus.pending),
        ],
    )
    summary = summarize([row])
    breakdown = {m.payment_method: (m.total, m.count) for m in summary.payment_method_breakdown}
    assert breakdown == {"Cash": (Decimal("500"), 1), "UPI": (Decimal("3000"), 1)}
    assert [m.payment_method for m in summary.payment_method_breakdown] == ["Cash", "UPI"]


def test_students_grouped_by_status_with_labels() -> None:
    summary = summarize(_two_entries())
    groups = {g.status: g.students for g in summary.students_by_status}
    assert [s.name for s in groups["overdue"]] == ["Vikram Shah"]
    student = groups["fully_paid"][0]
    assert student.course == "BTech"
    assert student.batch == "2023-2027"
    assert student.section == "A"
    assert student.semester == 1


def test_missing_labels_stay_none() -> None:
    row = _row(
        FeePaymentStatus.pending,
        "100",
        "0",
        course_name=None,
        batch_start_year=None,
        batch_end_year=None,
        section_name=None,
        semester=None,
    )
    student = summarize([row]).students_by_status[0].students[0]
    assert student.course is None
    assert student.batch is None
    assert student.section is None
    assert student.semester is None


def test_scholarships_and_discounts_summed() -> None:
    rows = [
        _row(FeePaymentStatus.pending, "1000", "0", scholarship_applied=Decimal("200"), discount_applied=Decimal("50")),
        _row(FeePaymentStatus.pending, "1000", "0", scholarship_applied=Decimal("300")),
    ]
    summary = summarize(rows)
    assert summary.total_scholarships == Decimal("500")
    assert summary.total_discounts == Decimal("50")


def test_payment_date_range_filters_entries_and_breakdown() -> None:
    january = _row(
        FeePaymentStatus.partially_paid,
        "1000",
        "700",
        [_tx("400", PaymentMethod.UPI, date(2024, 1, 15)), _tx("300", PaymentMethod.CASH, date(2024, 2, 20))],
    )
    march = _row(FeePaymentStatus.partially_paid, "2000", "100", [_tx("100", PaymentMethod.UPI, date(2024, 3, 1))])
    untouched = _row(FeePaymentStatus.pending, "4000", "0")

    summary = summarize([january, march, untouched], date(2024, 1, 1), date(2024, 1, 31))
    assert summary.total_fees == Decimal("1000")
    assert summary.total_collected == Decimal("700")
    assert [(m.payment_method, m.total) for m in summary.payment_method_breakdown] == [("UPI", Decimal("400"))]


def test_range_bounds_are_inclusive() -> None:
    row = _row(FeePaymentStatus.fully_paid, "100", "100", [_tx("100", PaymentMethod.UPI, date(2024, 1, 31))])
    assert summarize([row], end_date=date(2024, 1, 31)).total_fees == Decimal("100")
    assert summarize([row], start_date=date(2024, 1, 31)).total_fees == Decimal("100")
    assert summarize([row], start_date=date(2024, 2, 1)).total_fees == Decimal("0")


def test_empty_input() -> None:
    summary = summarize([])
    assert summary.total_fees == Decimal("0")
    assert summary.total_outstanding == Decimal("0")
    assert summary.payment_method_breakdown == []
    assert summary.status_distribution == []
    assert summary.students_by_status == []


def test_summary_is_deterministic() -> None:
    rows = _two_entries()
    assert summarize(rows) == summarize(rows)


def test_export_rows_and_csv() -> None:
    rows = _two_entries()
    rows[1] = _row(FeePaymentStatus.overdue, "5000", "0", student_name=None, course_name=None, semester=None)
    export = build_export_rows(summarize(rows))

    assert [r["Type"] for r in export] == ["Summary", "Payment Method", "Status Breakdown", "Status Breakdown", "Student", "Student"]
    overdue_student = export[-1]
    assert overdue_student["Status"] == "overdue"
    assert overdue_student["StudentName"] == MISSING
    assert overdue_student["Course"] == MISSING
    assert overdue_student["Semester"] == MISSING

    parsed = list(csv.DictReader(io.StringIO(render_csv(export))))
    assert list(parsed[0].keys()) == EXPORT_FIELDS
    assert parsed[0]["TotalFees"] == "15000"
    assert parsed[0]["PaymentMethod"] == ""
    assert parsed[1]["PaymentMethod"] == "UPI"
    assert parsed[1]["Transactions"] == "1"


def test_export_filename() -> None:
    assert export_filename(date(2024, 3, 5)) == "fee-report-2024-03-05.csv"
