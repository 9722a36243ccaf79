"""Embedded documents of a fee payment and the typed state the ledger engine works on."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import (
    FeePaymentStatus,
    HistoryEntryType,
    PaymentMethod,
    TransactionStatus,
)

ZERO = Decimal("0")


class PaymentTransactionEntry(BaseModel):
    """One payment attempt against a fee payment."""

    transaction_id: str
    amount: Decimal = Field(..., ge=0)
    payment_method: PaymentMethod
    status: TransactionStatus = TransactionStatus.pending
    payment_date: datetime
    receipt_url: Optional[str] = None
    notes: Optional[str] = None


class PaymentHistoryEntry(BaseModel):
    """Immutable audit row for a single financial event."""

    amount: Decimal = Field(..., ge=0)
    type: HistoryEntryType
    description: Optional[str] = None
    date: datetime
    recorded_by: Optional[str] = None


class CustomScholarship(BaseModel):
    type: Optional[str] = None  # e.g. Need-Based
    amount: Decimal = Field(ZERO, ge=0)


class ScholarshipGrant(BaseModel):
    student_id: UUID
    type: str  # Merit, Sports, Financial Aid, ...
    amount: Decimal
    from_date: date
    to_date: date


class LateFeeRule(BaseModel):
    from_date: date
    to_date: date
    fine_amount: Decimal


class FeePlanRules(BaseModel):
    """The part of a fee plan the recompute pass reads."""

    total_fee: Decimal
    due_date: date
    scholarships: List[ScholarshipGrant] = Field(default_factory=list)
    late_fees: List[LateFeeRule] = Field(default_factory=list)


class LedgerState(BaseModel):
    """Financial state of one fee payment, detached from storage."""

    student_id: UUID
    total_amount: Decimal
    due_date: date
    transactions: List[PaymentTransactionEntry] = Field(default_factory=list)
    payment_history: List[PaymentHistoryEntry] = Field(default_factory=list)
    custom_scholarship: Optional[CustomScholarship] = None
    scholarship_applied: Decimal = ZERO
    late_fee_applied: Decimal = ZERO
    discount_applied: Decimal = ZERO
    # Derived, rewritten by every recompute pass
    amount_paid: Decimal = ZERO
    total_due: Decimal = ZERO
    status: FeePaymentStatus = FeePaymentStatus.pending
