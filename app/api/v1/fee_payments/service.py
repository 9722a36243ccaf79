"""Fee payment service: ledger creation, transactions, adjustments, reads. Every write re-runs the ledger recompute."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth.dependencies import SYSTEM_ACTOR, SYSTEM_CREATOR
from app.core import ledger
from app.core.enums import (
    AdjustmentKind,
    FeePaymentStatus,
    HistoryEntryType,
    PaymentMethod,
    TransactionStatus,
)
from app.core.exceptions import ConflictError, InvalidInputError, NotFoundError, StorageError
from app.core.logger import log
from app.core.models import Batch, Course, FeePayment, FeePlan, Section, Student
from app.core.schemas import (
    CustomScholarship,
    FeePlanRules,
    LedgerState,
    PaymentHistoryEntry,
    PaymentTransactionEntry,
)

from .schemas import (
    AdjustmentCreate,
    FeePaymentCreate,
    FeePaymentResponse,
    FeePaymentTotals,
    FeePaymentUpdate,
    FeePaymentWithDetails,
    LateFeeCreate,
    PaymentHistoryData,
    TransactionCreate,
)

DUPLICATE_FEE_PAYMENT_MESSAGE = "Payment already exists for this student and fee plan"
BACK_REFERENCE_WARNING = "Fee payment created but the student record could not be updated"


def _to_uuid(val):
    if val is None:
        return None
    return val if isinstance(val, UUID) else UUID(str(val))


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- State mapping ---
def _plan_rules(plan: Optional[FeePlan]) -> Optional[FeePlanRules]:
    if plan is None:
        return None
    return FeePlanRules(
        total_fee=_to_decimal(plan.total_fee),
        due_date=plan.due_date,
        scholarships=plan.scholarships or [],
        late_fees=plan.late_fees or [],
    )


def _ledger_state(fp: FeePayment) -> LedgerState:
    return LedgerState(
        student_id=_to_uuid(fp.student_id),
        total_amount=_to_decimal(fp.total_amount),
        due_date=fp.due_date,
        transactions=fp.transactions or [],
        payment_history=fp.payment_history or [],
        custom_scholarship=fp.custom_scholarship,
        scholarship_applied=_to_decimal(fp.scholarship_applied),
        late_fee_applied=_to_decimal(fp.late_fee_applied),
        discount_applied=_to_decimal(fp.discount_applied),
        amount_paid=_to_decimal(fp.amount_paid),
        total_due=_to_decimal(fp.total_due),
        status=fp.status,
    )


def _store_state(fp: FeePayment, state: LedgerState) -> None:
    # JSON columns are reassigned, never mutated in place, so the ORM sees the change
    fp.total_amount = state.total_amount
    fp.due_date = state.due_date
    fp.transactions = [tx.model_dump(mode="json") for tx in state.transactions]
    fp.payment_history = [h.model_dump(mode="json") for h in state.payment_history]
    fp.custom_scholarship = (
        state.custom_scholarship.model_dump(mode="json") if state.custom_scholarship else None
    )
    fp.scholarship_applied = state.scholarship_applied
    fp.late_fee_applied = state.late_fee_applied
    fp.discount_applied = state.discount_applied
    fp.amount_paid = state.amount_paid
    fp.total_due = state.total_due
    fp.status = state.status.value


def _fp_to_response(fp: FeePayment) -> FeePaymentResponse:
    total_due = _to_decimal(fp.total_due)
    amount_paid = _to_decimal(fp.amount_paid)
    return FeePaymentResponse(
        id=_to_uuid(fp.id),
        student_id=_to_uuid(fp.student_id),
        fee_plan_id=_to_uuid(fp.fee_plan_id),
        course_id=_to_uuid(fp.course_id),
        batch_id=_to_uuid(fp.batch_id),
        section_id=_to_uuid(fp.section_id),
        total_amount=_to_decimal(fp.total_amount),
        amount_paid=amount_paid,
        total_due=total_due,
        balance=total_due - amount_paid,
        scholarship_applied=_to_decimal(fp.scholarship_applied),
        custom_scholarship=fp.custom_scholarship,
        late_fee_applied=_to_decimal(fp.late_fee_applied),
        discount_applied=_to_decimal(fp.discount_applied),
        status=fp.status,
        due_date=fp.due_date,
        transactions=fp.transactions or [],
        payment_history=fp.payment_history or [],
        version=fp.version,
        created_at=fp.created_at,
        updated_at=fp.updated_at,
    )


# --- Persistence helpers ---
async def _commit(db: AsyncSession, conflict_message: str = DUPLICATE_FEE_PAYMENT_MESSAGE) -> None:
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise ConflictError("Fee payment was modified by another request, reload and retry")
    except IntegrityError:
        await db.rollback()
        raise ConflictError(conflict_message)
    except SQLAlchemyError as e:
        await db.rollback()
        log.error("Fee payment write failed: %s", e, exc_info=True)
        raise StorageError("Server error while saving fee payment")


async def _get_fee_payment(db: AsyncSession, fee_payment_id: UUID) -> FeePayment:
    fp = await db.get(FeePayment, fee_payment_id)
    if not fp:
        raise NotFoundError("Fee payment record not found")
    return fp


async def _load_ledger(db: AsyncSession, fee_payment_id: UUID) -> Tuple[FeePayment, Optional[FeePlan]]:
    fp = await _get_fee_payment(db, fee_payment_id)
    plan = await db.get(FeePlan, fp.fee_plan_id)
    return fp, plan


async def _settle(
    db: AsyncSession,
    fp: FeePayment,
    plan: Optional[FeePlan],
    state: LedgerState,
    now: datetime,
) -> FeePaymentResponse:
    """Recompute, write the derived values back to the row and persist."""
    _store_state(fp, ledger.recompute(state, _plan_rules(plan), now))
    await _commit(db)
    return _fp_to_response(fp)


# --- Validation ---
def _ensure_amount(amount: Decimal, allow_zero: bool) -> None:
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidInputError("Amount must be a valid number")
    if amount < 0:
        raise InvalidInputError("Amount cannot be negative")
    if amount == 0 and not allow_zero:
        raise InvalidInputError("Amount must be greater than zero")


def _new_transaction(payload: TransactionCreate, now: datetime) -> PaymentTransactionEntry:
    _ensure_amount(payload.amount, allow_zero=True)
    try:
        method = PaymentMethod(payload.payment_method)
    except ValueError:
        raise InvalidInputError("Transaction must include a valid payment_method")
    return PaymentTransactionEntry(
        transaction_id=(payload.transaction_id or "").strip() or str(uuid.uuid4()),
        amount=payload.amount,
        payment_method=method,
        status=payload.status,
        payment_date=payload.payment_date or now,
        receipt_url=payload.receipt_url,
        notes=payload.notes,
    )


def _payment_entry(tx: PaymentTransactionEntry, description: str, recorded_by: str, now: datetime) -> PaymentHistoryEntry:
    return PaymentHistoryEntry(
        amount=tx.amount,
        type=HistoryEntryType.payment,
        description=description,
        date=now,
        recorded_by=recorded_by,
    )


# --- Ledger creation ---
async def create_fee_payment(
    db: AsyncSession,
    payload: FeePaymentCreate,
    recorded_by: str = SYSTEM_CREATOR,
    now: Optional[datetime] = None,
) -> Tuple[FeePaymentResponse, Optional[str]]:
    """Create the ledger entry for a student and fee plan.

    Returns the created entry and a warning when the student back-reference could not be
    written; that failure never undoes the creation.
    """
    now = now or _utcnow()
    student = await db.get(Student, payload.student_id)
    if not student:
        raise NotFoundError("Student not found")
    plan = await db.get(FeePlan, payload.fee_plan_id)
    if not plan:
        raise NotFoundError("Fee plan not found")
    if payload.course_id is not None and not await db.get(Course, payload.course_id):
        raise NotFoundError("Course not found")
    if payload.batch_id is not None and not await db.get(Batch, payload.batch_id):
        raise NotFoundError("Batch not found")

    existing = (
        await db.execute(
            select(FeePayment.id).where(
                FeePayment.student_id == payload.student_id,
                FeePayment.fee_plan_id == payload.fee_plan_id,
            )
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError(DUPLICATE_FEE_PAYMENT_MESSAGE)

    state = LedgerState(
        student_id=_to_uuid(student.id),
        total_amount=payload.total_amount if payload.total_amount is not None else _to_decimal(plan.total_fee),
        due_date=payload.due_date or plan.due_date,
    )
    if payload.transaction:
        tx = _new_transaction(payload.transaction, now)
        state.transactions.append(tx)
        if tx.status == TransactionStatus.completed:
            state.payment_history.append(
                _payment_entry(tx, f"Initial payment via {tx.payment_method.value}", recorded_by, now)
            )
    if payload.custom_scholarship:
        _ensure_amount(payload.custom_scholarship.amount, allow_zero=True)
        state.custom_scholarship = CustomScholarship(
            type=payload.custom_scholarship.type,
            amount=payload.custom_scholarship.amount,
        )

    section_ids = plan.section_ids or []
    fp = FeePayment(
        student_id=student.id,
        fee_plan_id=plan.id,
        course_id=payload.course_id or plan.course_id,
        batch_id=payload.batch_id or plan.batch_id,
        section_id=student.section_id or (_to_uuid(section_ids[0]) if section_ids else None),
    )
    _store_state(fp, ledger.recompute(state, _plan_rules(plan), now))
    db.add(fp)
    await _commit(db)
    response = _fp_to_response(fp)
    log.info("Fee payment %s created for student %s, plan %s", fp.id, student.id, plan.id)

    warning = await _link_student(db, student, fp.id)
    return response, warning


async def _link_student(db: AsyncSession, student: Student, fee_payment_id: UUID) -> Optional[str]:
    # rollback expires the student, so keep the id for logging
    student_id = student.id
    try:
        student.fee_payment_ids = [*(student.fee_payment_ids or []), str(fee_payment_id)]
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log.warning("Back-reference from student %s to fee payment %s failed: %s", student_id, fee_payment_id, e)
        return BACK_REFERENCE_WARNING
    return None


# --- Transaction recorder ---
async def record_transaction(
    db: AsyncSession,
    fee_payment_id: UUID,
    payload: TransactionCreate,
    recorded_by: str = SYSTEM_ACTOR,
    now: Optional[datetime] = None,
) -> FeePaymentResponse:
    now = now or _utcnow()
    fp, plan = await _load_ledger(db, fee_payment_id)
    tx = _new_transaction(payload, now)

    state = _ledger_state(fp)
    if any(existing.transaction_id == tx.transaction_id for existing in state.transactions):
        raise ConflictError("Transaction with this ID already exists")
    state.transactions.append(tx)
    if tx.status == TransactionStatus.completed:
        description = f"Payment via {tx.payment_method.value}"
        if tx.notes:
            description = f"{description}: {tx.notes}"
        state.payment_history.append(_payment_entry(tx, description, recorded_by, now))

    response = await _settle(db, fp, plan, state, now)
    log.info("Transaction %s (%s, %s) added to fee payment %s", tx.transaction_id, tx.amount, tx.status.value, fp.id)
    return response


# --- Adjustment recorder ---
async def apply_scholarship_or_discount(
    db: AsyncSession,
    fee_payment_id: UUID,
    payload: AdjustmentCreate,
    recorded_by: str = SYSTEM_ACTOR,
    now: Optional[datetime] = None,
) -> FeePaymentResponse:
    """Manual scholarship (replaces the custom scholarship) or discount (additive)."""
    now = now or _utcnow()
    _ensure_amount(payload.amount, allow_zero=False)
    try:
        kind = AdjustmentKind(payload.kind)
    except ValueError:
        raise InvalidInputError('Type must be either "scholarship" or "discount"')
    fp, plan = await _load_ledger(db, fee_payment_id)

    state = _ledger_state(fp)
    amount = payload.amount
    if kind == AdjustmentKind.scholarship:
        scholarship_type = payload.custom_scholarship_type or "Manual"
        state.custom_scholarship = CustomScholarship(type=scholarship_type, amount=amount)
        state.scholarship_applied += amount
        # Carries the custom marker so the recompute pass sees this scholarship as recorded
        description = ledger.custom_scholarship_description(scholarship_type)
        if payload.description:
            description = f"{description}: {payload.description}"
    else:
        state.discount_applied += amount
        description = payload.description or "Manual discount applied"

    state.payment_history.append(
        PaymentHistoryEntry(
            amount=amount,
            type=HistoryEntryType(kind.value),
            description=description,
            date=now,
            recorded_by=payload.recorded_by or recorded_by,
        )
    )
    response = await _settle(db, fp, plan, state, now)
    log.info("Manual %s of %s applied to fee payment %s", kind.value, amount, fp.id)
    return response


async def apply_late_fee(
    db: AsyncSession,
    fee_payment_id: UUID,
    payload: LateFeeCreate,
    recorded_by: str = SYSTEM_ACTOR,
    now: Optional[datetime] = None,
) -> FeePaymentResponse:
    """Manual late fee. Always additive, never deduplicated."""
    now = now or _utcnow()
    _ensure_amount(payload.fine_amount, allow_zero=False)
    fp, plan = await _load_ledger(db, fee_payment_id)

    state = _ledger_state(fp)
    state.late_fee_applied += payload.fine_amount
    state.payment_history.append(
        PaymentHistoryEntry(
            amount=payload.fine_amount,
            type=HistoryEntryType.late_fee,
            description=payload.description or "Late fee applied",
            date=now,
            recorded_by=recorded_by,
        )
    )
    response = await _settle(db, fp, plan, state, now)
    log.info("Manual late fee of %s applied to fee payment %s", payload.fine_amount, fp.id)
    return response


async def recompute_fee_payment(
    db: AsyncSession,
    fee_payment_id: UUID,
    now: Optional[datetime] = None,
) -> FeePaymentResponse:
    now = now or _utcnow()
    fp, plan = await _load_ledger(db, fee_payment_id)
    return await _settle(db, fp, plan, _ledger_state(fp), now)


# --- Update / delete ---
async def update_fee_payment(
    db: AsyncSession,
    fee_payment_id: UUID,
    payload: FeePaymentUpdate,
    recorded_by: str = SYSTEM_ACTOR,
    now: Optional[datetime] = None,
) -> FeePaymentResponse:
    """Change the due date and/or waive the fee.

    Status is derived, so the only status an admin can set is waived. Any other status
    clears a waiver and lets the recompute pass derive the status again.
    """
    now = now or _utcnow()
    fp, plan = await _load_ledger(db, fee_payment_id)

    state = _ledger_state(fp)
    if payload.due_date is not None:
        state.due_date = payload.due_date
    if payload.status == FeePaymentStatus.waived:
        if state.status != FeePaymentStatus.waived:
            state.status = FeePaymentStatus.waived
            state.payment_history.append(
                PaymentHistoryEntry(
                    amount=Decimal("0"),
                    type=HistoryEntryType.waived,
                    description="Waived by admin",
                    date=now,
                    recorded_by=recorded_by,
                )
            )
    elif payload.status is not None and state.status == FeePaymentStatus.waived:
        state.status = FeePaymentStatus.pending

    response = await _settle(db, fp, plan, state, now)
    log.info("Fee payment %s updated: status=%s due_date=%s", fp.id, response.status.value, response.due_date)
    return response


async def delete_fee_payment(db: AsyncSession, fee_payment_id: UUID) -> None:
    fp = await _get_fee_payment(db, fee_payment_id)
    student = await db.get(Student, fp.student_id)
    if student is not None:
        student.fee_payment_ids = [i for i in (student.fee_payment_ids or []) if i != str(fp.id)]
    await db.delete(fp)
    await _commit(db)
    log.info("Fee payment %s deleted", fee_payment_id)


# --- Reads ---
def _details_query():
    return (
        select(
            FeePayment,
            Student.name.label("student_name"),
            FeePlan.name.label("fee_plan_name"),
            Course.name.label("course_name"),
            Batch.start_year.label("batch_start_year"),
            Batch.end_year.label("batch_end_year"),
            Section.name.label("section_name"),
        )
        .outerjoin(Student, FeePayment.student_id == Student.id)
        .outerjoin(FeePlan, FeePayment.fee_plan_id == FeePlan.id)
        .outerjoin(Course, FeePayment.course_id == Course.id)
        .outerjoin(Batch, FeePayment.batch_id == Batch.id)
        .outerjoin(Section, FeePayment.section_id == Section.id)
    )


def _row_to_details(row) -> FeePaymentWithDetails:
    fp, student_name, plan_name, course_name, start_year, end_year, section_name = row
    return FeePaymentWithDetails(
        **_fp_to_response(fp).model_dump(),
        student_name=student_name,
        fee_plan_name=plan_name,
        course_name=course_name,
        batch=f"{start_year}-{end_year}" if start_year is not None else None,
        section_name=section_name,
    )


async def get_fee_payment(db: AsyncSession, fee_payment_id: UUID) -> FeePaymentWithDetails:
    row = (await db.execute(_details_query().where(FeePayment.id == fee_payment_id))).first()
    if not row:
        raise NotFoundError("Fee payment record not found")
    return _row_to_details(row)


async def get_student_fee_payments(
    db: AsyncSession,
    student_id: UUID,
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[FeePaymentStatus] = None,
    course_id: Optional[UUID] = None,
    batch_id: Optional[UUID] = None,
) -> Tuple[List[FeePaymentWithDetails], int]:
    if not await db.get(Student, student_id):
        raise NotFoundError("Student not found")

    conditions = [FeePayment.student_id == student_id]
    if status_filter is not None:
        conditions.append(FeePayment.status == status_filter.value)
    if course_id is not None:
        conditions.append(FeePayment.course_id == course_id)
    if batch_id is not None:
        conditions.append(FeePayment.batch_id == batch_id)

    total = (
        await db.execute(select(func.count()).select_from(FeePayment).where(*conditions))
    ).scalar_one()
    stmt = (
        _details_query()
        .where(*conditions)
        .order_by(FeePayment.created_at.desc(), FeePayment.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()
    return [_row_to_details(r) for r in rows], total


async def get_payment_history(db: AsyncSession, fee_payment_id: UUID) -> PaymentHistoryData:
    fp = await _get_fee_payment(db, fee_payment_id)
    return PaymentHistoryData(
        payment_history=fp.payment_history or [],
        transactions=fp.transactions or [],
    )


async def get_fee_payment_totals(db: AsyncSession) -> FeePaymentTotals:
    """Entry count and the sum of every transaction amount, whatever its status."""
    rows = (await db.execute(select(FeePayment.transactions))).scalars().all()
    total_amount = sum(
        (_to_decimal(tx.get("amount")) for txs in rows for tx in (txs or [])),
        Decimal("0"),
    )
    return FeePaymentTotals(total_payments=len(rows), total_amount=total_amount)
