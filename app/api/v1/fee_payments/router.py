"""Fee payments router: ledger entries, transactions, adjustments, history."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import SYSTEM_CREATOR, get_current_user, recorded_by
from app.auth.schemas import CurrentUser
from app.core.config import settings
from app.core.enums import FeePaymentStatus
from app.db.session import get_db

from .schemas import (
    AdjustmentCreate,
    FeePaymentCreate,
    FeePaymentDetailEnvelope,
    FeePaymentEnvelope,
    FeePaymentTotalsEnvelope,
    FeePaymentUpdate,
    LateFeeCreate,
    MessageResponse,
    PaymentHistoryEnvelope,
    StudentFeePaymentsPage,
    TransactionCreate,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-payments", tags=["fee-payments"])


@router.post(
    "",
    response_model=FeePaymentEnvelope,
    status_code=status.HTTP_201_CREATED,
)
async def create_fee_payment(
    payload: FeePaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> FeePaymentEnvelope:
    fee_payment, warning = await service.create_fee_payment(
        db, payload, recorded_by=recorded_by(current_user, SYSTEM_CREATOR)
    )
    return FeePaymentEnvelope(fee_payment=fee_payment, warning=warning)


@router.get("/analytics/summary", response_model=FeePaymentTotalsEnvelope)
async def get_fee_payment_totals(
    db: AsyncSession = Depends(get_db),
) -> FeePaymentTotalsEnvelope:
    return FeePaymentTotalsEnvelope(analytics=await service.get_fee_payment_totals(db))


@router.get("/student/{student_id}", response_model=StudentFeePaymentsPage)
async def get_student_fee_payments(
    student_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
    fee_status: Optional[FeePaymentStatus] = Query(None, alias="status"),
    course_id: Optional[UUID] = Query(None),
    batch_id: Optional[UUID] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> StudentFeePaymentsPage:
    docs, total = await service.get_student_fee_payments(
        db,
        student_id,
        page=page,
        limit=limit,
        status_filter=fee_status,
        course_id=course_id,
        batch_id=batch_id,
    )
    return StudentFeePaymentsPage(docs=docs, total=total, page=page, pages=(total + limit - 1) // limit)


@router.get("/{fee_payment_id}", response_model=FeePaymentDetailEnvelope)
async def get_fee_payment(
    fee_payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeePaymentDetailEnvelope:
    return FeePaymentDetailEnvelope(fee_payment=await service.get_fee_payment(db, fee_payment_id))


@router.get("/{fee_payment_id}/history", response_model=PaymentHistoryEnvelope)
async def get_payment_history(
    fee_payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> PaymentHistoryEnvelope:
    return PaymentHistoryEnvelope(data=await service.get_payment_history(db, fee_payment_id))


@router.post("/{fee_payment_id}/transactions", response_model=FeePaymentEnvelope)
async def add_payment_transaction(
    fee_payment_id: UUID,
    payload: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> FeePaymentEnvelope:
    fee_payment = await service.record_transaction(
        db, fee_payment_id, payload, recorded_by=recorded_by(current_user)
    )
    return FeePaymentEnvelope(message="Transaction added successfully", fee_payment=fee_payment)


@router.post("/{fee_payment_id}/adjustments", response_model=FeePaymentEnvelope)
async def apply_scholarship_or_discount(
    fee_payment_id: UUID,
    payload: AdjustmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> FeePaymentEnvelope:
    fee_payment = await service.apply_scholarship_or_discount(
        db, fee_payment_id, payload, recorded_by=recorded_by(current_user)
    )
    return FeePaymentEnvelope(message=f"{payload.kind.value} applied successfully", fee_payment=fee_payment)


@router.post("/{fee_payment_id}/late-fees", response_model=FeePaymentEnvelope)
async def apply_late_fee(
    fee_payment_id: UUID,
    payload: LateFeeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> FeePaymentEnvelope:
    fee_payment = await service.apply_late_fee(
        db, fee_payment_id, payload, recorded_by=recorded_by(current_user)
    )
    return FeePaymentEnvelope(message="Late fee applied successfully", fee_payment=fee_payment)


@router.post("/{fee_payment_id}/recompute", response_model=FeePaymentEnvelope)
async def recompute_fee_payment(
    fee_payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> FeePaymentEnvelope:
    return FeePaymentEnvelope(fee_payment=await service.recompute_fee_payment(db, fee_payment_id))


@router.patch("/{fee_payment_id}", response_model=FeePaymentEnvelope)
async def update_fee_payment(
    fee_payment_id: UUID,
    payload: FeePaymentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[CurrentUser] = Depends(get_current_user),
) -> FeePaymentEnvelope:
    fee_payment = await service.update_fee_payment(
        db, fee_payment_id, payload, recorded_by=recorded_by(current_user)
    )
    return FeePaymentEnvelope(fee_payment=fee_payment)


@router.delete("/{fee_payment_id}", response_model=MessageResponse)
async def delete_fee_payment(
    fee_payment_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await service.delete_fee_payment(db, fee_payment_id)
    return MessageResponse(message="Deleted")
