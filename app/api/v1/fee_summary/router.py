"""Fee summary router: dashboard, filtered analytics, CSV export, filter options, student search."""

from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import FeePaymentStatus
from app.db.session import get_db

from .export import build_export_rows, export_filename, render_csv
from .schemas import (
    AnalyticsEnvelope,
    AnalyticsFilter,
    BatchOptionsEnvelope,
    CourseOptionsEnvelope,
    StudentSearchEnvelope,
)
from . import service

router = APIRouter(prefix="/api/v1/fee-summary", tags=["fee-summary"])


async def analytics_filters(
    course_name: Optional[str] = Query(None),
    batch_start_year: Optional[int] = Query(None),
    batch_end_year: Optional[int] = Query(None),
    course_id: Optional[UUID] = Query(None),
    batch_id: Optional[UUID] = Query(None),
    section_id: Optional[UUID] = Query(None),
    fee_status: Optional[FeePaymentStatus] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> AnalyticsFilter:
    return await service.resolve_filters(
        db,
        course_name=course_name,
        batch_start_year=batch_start_year,
        batch_end_year=batch_end_year,
        course_id=course_id,
        batch_id=batch_id,
        section_id=section_id,
        status_filter=fee_status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/dashboard", response_model=AnalyticsEnvelope)
async def get_dashboard_analytics(
    db: AsyncSession = Depends(get_db),
) -> AnalyticsEnvelope:
    return AnalyticsEnvelope(data=await service.get_payment_analytics(db))


@router.get("/analytics", response_model=AnalyticsEnvelope)
async def get_filtered_analytics(
    filters: AnalyticsFilter = Depends(analytics_filters),
    db: AsyncSession = Depends(get_db),
) -> AnalyticsEnvelope:
    return AnalyticsEnvelope(data=await service.get_payment_analytics(db, filters))


@router.get("/export")
async def export_analytics(
    filters: AnalyticsFilter = Depends(analytics_filters),
    db: AsyncSession = Depends(get_db),
) -> Response:
    summary = await service.get_payment_analytics(db, filters)
    filename = export_filename(datetime.now(timezone.utc).date())
    return Response(
        content=render_csv(build_export_rows(summary)),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/students/search", response_model=StudentSearchEnvelope)
async def search_students(
    name: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> StudentSearchEnvelope:
    return StudentSearchEnvelope(data=await service.search_students(db, name))


@router.get("/courses", response_model=CourseOptionsEnvelope)
async def list_courses(
    db: AsyncSession = Depends(get_db),
) -> CourseOptionsEnvelope:
    return CourseOptionsEnvelope(data=await service.list_courses(db))


@router.get("/batches", response_model=BatchOptionsEnvelope)
async def list_batches(
    db: AsyncSession = Depends(get_db),
) -> BatchOptionsEnvelope:
    return BatchOptionsEnvelope(data=await service.list_batches(db))
