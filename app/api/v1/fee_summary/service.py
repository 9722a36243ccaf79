"""Fee summary service: filter resolution, analytics over fee payments, student search."""

import asyncio
from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import FeePaymentStatus
from app.core.exceptions import InvalidInputError, NotFoundError, ServiceError
from app.core.logger import log
from app.core.models import Batch, Course, FeePayment, Section, Student

from .aggregation import summarize
from .schemas import (
    AnalyticsFilter,
    AnalyticsRow,
    AnalyticsSummary,
    BatchOption,
    CourseOption,
    StudentSearchResult,
)

NO_PAYMENT_RECORD = "No payment record"


async def resolve_filters(
    db: AsyncSession,
    course_name: Optional[str] = None,
    batch_start_year: Optional[int] = None,
    batch_end_year: Optional[int] = None,
    course_id: Optional[UUID] = None,
    batch_id: Optional[UUID] = None,
    section_id: Optional[UUID] = None,
    status_filter: Optional[FeePaymentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> AnalyticsFilter:
    """Turn request filters into ids. A course name or batch years that match nothing is a 404."""
    if start_date and end_date and start_date > end_date:
        raise InvalidInputError("start_date must not be after end_date")

    if course_name:
        course_id = (
            await db.execute(select(Course.id).where(Course.name == course_name))
        ).scalar_one_or_none()
        if course_id is None:
            raise NotFoundError("Course not found")

    if batch_start_year is not None and batch_end_year is not None:
        batch_id = (
            await db.execute(
                select(Batch.id)
                .where(Batch.start_year == batch_start_year, Batch.end_year == batch_end_year)
                .order_by(Batch.id)
                .limit(1)
            )
        ).scalar_one_or_none()
        if batch_id is None:
            raise NotFoundError("Batch not found")

    return AnalyticsFilter(
        course_id=course_id,
        batch_id=batch_id,
        section_id=section_id,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
    )


async def _load_rows(db: AsyncSession, filters: AnalyticsFilter) -> List[AnalyticsRow]:
    # Labels come from the student's own course/batch/section; missing joins stay None
    stmt = (
        select(
            FeePayment,
            Student.id.label("student_id"),
            Student.name.label("student_name"),
            Student.semester,
            Course.name.label("course_name"),
            Batch.start_year,
            Batch.end_year,
            Section.name.label("section_name"),
        )
        .outerjoin(Student, FeePayment.student_id == Student.id)
        .outerjoin(Course, Student.course_id == Course.id)
        .outerjoin(Batch, Student.batch_id == Batch.id)
        .outerjoin(Section, Student.section_id == Section.id)
    )
    if filters.course_id is not None:
        stmt = stmt.where(FeePayment.course_id == filters.course_id)
    if filters.batch_id is not None:
        stmt = stmt.where(FeePayment.batch_id == filters.batch_id)
    if filters.section_id is not None:
        stmt = stmt.where(FeePayment.section_id == filters.section_id)
    if filters.status is not None:
        stmt = stmt.where(FeePayment.status == filters.status.value)
    stmt = stmt.order_by(FeePayment.created_at, FeePayment.id)

    result = await db.execute(stmt)
    rows = []
    for fp, student_id, student_name, semester, course_name, start_year, end_year, section_name in result.all():
        rows.append(
            AnalyticsRow(
                status=fp.status,
                total_amount=fp.total_amount,
                amount_paid=fp.amount_paid,
                late_fee_applied=fp.late_fee_applied,
                scholarship_applied=fp.scholarship_applied,
                discount_applied=fp.discount_applied,
                transactions=fp.transactions or [],
                student_id=student_id,
                student_name=student_name,
                semester=semester,
                course_name=course_name,
                batch_start_year=start_year,
                batch_end_year=end_year,
                section_name=section_name,
            )
        )
    return rows


async def get_payment_analytics(
    db: AsyncSession,
    filters: Optional[AnalyticsFilter] = None,
    timeout: Optional[float] = None,
) -> AnalyticsSummary:
    """Single read-only pass over the matching fee payments.

    timeout defaults to ANALYTICS_TIMEOUT_SECONDS; the pass is cancelled when it expires.
    """
    filters = filters or AnalyticsFilter()
    timeout = timeout if timeout is not None else settings.analytics_timeout_seconds
    try:
        rows = await asyncio.wait_for(_load_rows(db, filters), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning("Fee analytics timed out after %ss (filters=%s)", timeout, filters.model_dump())
        raise ServiceError("Analytics took too long, narrow the filters", status.HTTP_504_GATEWAY_TIMEOUT)
    return summarize(rows, filters.start_date, filters.end_date)


async def search_students(db: AsyncSession, name: Optional[str] = None) -> List[StudentSearchResult]:
    """Students whose name contains `name` (case-insensitive) with their fee payment status."""
    stmt = select(Student.id, Student.name).order_by(Student.name, Student.id)
    if name:
        stmt = stmt.where(Student.name.ilike(f"%{name}%"))
    students = (await db.execute(stmt)).all()
    if not students:
        return []

    payments = (
        await db.execute(
            select(FeePayment.student_id, FeePayment.status)
            .where(FeePayment.student_id.in_([s.id for s in students]))
            .order_by(FeePayment.created_at, FeePayment.id)
        )
    ).all()
    first_status = {}
    for student_id, fee_status in payments:
        first_status.setdefault(student_id, fee_status)

    return [
        StudentSearchResult(
            student_id=s.id,
            name=s.name,
            status=first_status.get(s.id, NO_PAYMENT_RECORD),
        )
        for s in students
    ]


async def list_courses(db: AsyncSession) -> List[CourseOption]:
    """Course names accepted by the course_name analytics filter."""
    result = await db.execute(select(Course.id, Course.name).order_by(Course.name))
    return [CourseOption(id=row.id, name=row.name) for row in result.all()]


async def list_batches(db: AsyncSession) -> List[BatchOption]:
    """Batch years accepted by the batch_start_year / batch_end_year analytics filters."""
    result = await db.execute(
        select(Batch.id, Batch.start_year, Batch.end_year).order_by(Batch.start_year, Batch.end_year, Batch.id)
    )
    return [
        BatchOption(id=row.id, start_year=row.start_year, end_year=row.end_year)
        for row in result.all()
    ]
