"""Fee summary schemas: analytics filters, the aggregated report, filter options and student search."""

from datetime import date
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeePaymentStatus
from app.core.schemas import PaymentTransactionEntry


class AnalyticsFilter(BaseModel):
    course_id: Optional[UUID] = None
    batch_id: Optional[UUID] = None
    section_id: Optional[UUID] = None
    status: Optional[FeePaymentStatus] = None
    start_date: Optional[date] = Field(None, description="Inclusive lower bound on transaction payment date")
    end_date: Optional[date] = Field(None, description="Inclusive upper bound on transaction payment date")


class AnalyticsRow(BaseModel):
    """One fee payment joined with its student's course, batch and section labels."""

    status: FeePaymentStatus
    total_amount: Decimal
    amount_paid: Decimal
    late_fee_applied: Decimal
    scholarship_applied: Decimal
    discount_applied: Decimal
    transactions: List[PaymentTransactionEntry] = Field(default_factory=list)
    student_id: Optional[UUID] = None
    student_name: Optional[str] = None
    semester: Optional[int] = None
    course_name: Optional[str] = None
    batch_start_year: Optional[int] = None
    batch_end_year: Optional[int] = None
    section_name: Optional[str] = None


class PaymentMethodTotal(BaseModel):
    payment_method: str
    total: Decimal
    count: int


class StatusCount(BaseModel):
    status: str
    count: int


class StudentSummary(BaseModel):
    name: Optional[str] = None
    student_id: Optional[UUID] = None
    course: Optional[str] = None
    batch: Optional[str] = None
    semester: Optional[int] = None
    section: Optional[str] = None


class StatusStudents(BaseModel):
    status: str
    students: List[StudentSummary]


class AnalyticsSummary(BaseModel):
    total_fees: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    total_fines: Decimal
    number_of_fines: int
    total_scholarships: Decimal
    total_discounts: Decimal
    payment_method_breakdown: List[PaymentMethodTotal]
    status_distribution: List[StatusCount]
    students_by_status: List[StatusStudents]


class AnalyticsEnvelope(BaseModel):
    success: bool = True
    data: AnalyticsSummary


class StudentSearchResult(BaseModel):
    student_id: UUID
    name: str
    status: str  # fee payment status, or "No payment record"


class StudentSearchEnvelope(BaseModel):
    success: bool = True
    data: List[StudentSearchResult]


class CourseOption(BaseModel):
    id: UUID
    name: str


class BatchOption(BaseModel):
    id: UUID
    start_year: int
    end_year: int


class CourseOptionsEnvelope(BaseModel):
    success: bool = True
    data: List[CourseOption]


class BatchOptionsEnvelope(BaseModel):
    success: bool = True
    data: List[BatchOption]
