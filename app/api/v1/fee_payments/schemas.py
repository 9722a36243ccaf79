"""Fee payment schemas: typed commands in, ledger views out."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import AdjustmentKind, FeePaymentStatus, PaymentMethod, TransactionStatus
from app.core.schemas import CustomScholarship, PaymentHistoryEntry, PaymentTransactionEntry


# --- Commands ---
class TransactionCreate(BaseModel):
    transaction_id: Optional[str] = Field(None, max_length=100, description="Generated when omitted")
    amount: Decimal = Field(..., ge=0)
    payment_method: PaymentMethod
    status: TransactionStatus = TransactionStatus.pending
    payment_date: Optional[datetime] = None
    receipt_url: Optional[str] = None
    notes: Optional[str] = None


class CustomScholarshipIn(BaseModel):
    type: Optional[str] = Field(None, max_length=100)
    amount: Decimal = Field(..., ge=0)


class FeePaymentCreate(BaseModel):
    student_id: UUID
    fee_plan_id: UUID
    course_id: Optional[UUID] = None
    batch_id: Optional[UUID] = None
    total_amount: Optional[Decimal] = Field(None, ge=0, description="Defaults to the plan's total fee")
    due_date: Optional[date] = Field(None, description="Defaults to the plan's due date")
    transaction: Optional[TransactionCreate] = None
    custom_scholarship: Optional[CustomScholarshipIn] = None


class AdjustmentCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    kind: AdjustmentKind
    description: Optional[str] = None
    recorded_by: Optional[str] = None
    custom_scholarship_type: Optional[str] = Field(None, max_length=100, description="Scholarship only, default Manual")


class LateFeeCreate(BaseModel):
    fine_amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None


class FeePaymentUpdate(BaseModel):
    status: Optional[FeePaymentStatus] = None
    due_date: Optional[date] = None

    @model_validator(mode="after")
    def require_change(self) -> "FeePaymentUpdate":
        if self.status is None and self.due_date is None:
            raise ValueError("status or due_date is required")
        return self


# --- Responses ---
class FeePaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_plan_id: UUID
    course_id: UUID
    batch_id: UUID
    section_id: Optional[UUID] = None
    total_amount: Decimal
    amount_paid: Decimal
    total_due: Decimal
    balance: Decimal
    scholarship_applied: Decimal
    custom_scholarship: Optional[CustomScholarship] = None
    late_fee_applied: Decimal
    discount_applied: Decimal
    status: FeePaymentStatus
    due_date: date
    transactions: List[PaymentTransactionEntry]
    payment_history: List[PaymentHistoryEntry]
    version: int
    created_at: datetime
    updated_at: datetime


class FeePaymentWithDetails(FeePaymentResponse):
    student_name: Optional[str] = None
    fee_plan_name: Optional[str] = None
    course_name: Optional[str] = None
    batch: Optional[str] = None
    section_name: Optional[str] = None


class FeePaymentEnvelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    fee_payment: FeePaymentResponse
    warning: Optional[str] = None


class FeePaymentDetailEnvelope(BaseModel):
    success: bool = True
    fee_payment: FeePaymentWithDetails


class StudentFeePaymentsPage(BaseModel):
    success: bool = True
    docs: List[FeePaymentWithDetails]
    total: int
    page: int
    pages: int


class PaymentHistoryData(BaseModel):
    payment_history: List[PaymentHistoryEntry]
    transactions: List[PaymentTransactionEntry]


class PaymentHistoryEnvelope(BaseModel):
    success: bool = True
    data: PaymentHistoryData


class FeePaymentTotals(BaseModel):
    total_payments: int
    total_amount: Decimal


class FeePaymentTotalsEnvelope(BaseModel):
    success: bool = True
    analytics: FeePaymentTotals


class MessageResponse(BaseModel):
    success: bool = True
    message: str
