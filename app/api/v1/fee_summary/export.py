"""Flatten an analytics summary into CSV rows with a fixed column set."""

import csv
import io
from datetime import date
from typing import Dict, List

from .schemas import AnalyticsSummary

EXPORT_FIELDS = [
    "Type",
    "TotalFees",
    "TotalCollected",
    "TotalOutstanding",
    "TotalFines",
    "NumberOfFines",
    "TotalScholarships",
    "TotalDiscounts",
    "PaymentMethod",
    "Total",
    "Transactions",
    "Status",
    "Count",
    "StudentName",
    "StudentId",
    "Course",
    "Batch",
    "Semester",
    "Section",
]

MISSING = "N/A"


def build_export_rows(summary: AnalyticsSummary) -> List[Dict[str, object]]:
    rows: List[Dict[str, object]] = [
        {
            "Type": "Summary",
            "TotalFees": summary.total_fees,
            "TotalCollected": summary.total_collected,
            "TotalOutstanding": summary.total_outstanding,
            "TotalFines": summary.total_fines,
            "NumberOfFines": summary.number_of_fines,
            "TotalScholarships": summary.total_scholarships,
            "TotalDiscounts": summary.total_discounts,
        }
    ]
    for method in summary.payment_method_breakdown:
        rows.append(
            {
                "Type": "Payment Method",
                "PaymentMethod": method.payment_method,
                "Total": method.total,
                "Transactions": method.count,
            }
        )
    for item in summary.status_distribution:
        rows.append({"Type": "Status Breakdown", "Status": item.status, "Count": item.count})
    for group in summary.students_by_status:
        for student in group.students:
            rows.append(
                {
                    "Type": "Student",
                    "Status": group.status,
                    "StudentName": student.name or MISSING,
                    "StudentId": str(student.student_id) if student.student_id else MISSING,
                    "Course": student.course or MISSING,
                    "Batch": student.batch or MISSING,
                    "Semester": student.semester if student.semester is not None else MISSING,
                    "Section": student.section or MISSING,
                }
            )
    return rows


def render_csv(rows: List[Dict[str, object]]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_FIELDS, restval="")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue()


def export_filename(today: date) -> str:
    return f"fee-report-{today.isoformat()}.csv"
