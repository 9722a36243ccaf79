import os
from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, List, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.models import Batch, Course, FeePlan, Section, Student
from app.core.schemas import LateFeeRule, ScholarshipGrant
from app.db.session import Base, get_db


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory SQLite DB per test; overrides the FastAPI session dependency."""
    # StaticPool keeps one connection so every session sees the same in-memory DB
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class Cohort:
    """A course with one batch and one section, plus helpers to add students and plans."""

    def __init__(self, db: AsyncSession, course: Course, batch: Batch, section: Section) -> None:
        self.db = db
        self.course = course
        self.batch = batch
        self.section = section

    async def add_student(self, name: str, email: Optional[str] = None, semester: int = 1) -> Student:
        student = Student(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            course_id=self.course.id,
            batch_id=self.batch.id,
            section_id=self.section.id,
            semester=semester,
            fee_payment_ids=[],
        )
        self.db.add(student)
        await self.db.commit()
        return student

    async def add_plan(
        self,
        name: str = "Semester 1",
        total_fee: str = "10000",
        due_date: date = date(2024, 1, 10),
        late_fees: Optional[List[LateFeeRule]] = None,
        scholarships: Optional[List[ScholarshipGrant]] = None,
    ) -> FeePlan:
        plan = FeePlan(
            name=name,
            course_id=self.course.id,
            batch_id=self.batch.id,
            section_ids=[str(self.section.id)],
            duration="semesterly",
            due_date=due_date,
            fee_components=[{"fee_type": "Tuition", "amount": total_fee, "tax": "0"}],
            total_fee=Decimal(total_fee),
            late_fees=[r.model_dump(mode="json") for r in late_fees or []],
            scholarships=[s.model_dump(mode="json") for s in scholarships or []],
        )
        self.db.add(plan)
        await self.db.commit()
        return plan


@pytest.fixture()
async def cohort(db_session: AsyncSession) -> Cohort:
    course = Course(name="BTech", duration=4)
    db_session.add(course)
    await db_session.flush()
    batch = Batch(start_year=2023, end_year=2027, course_id=course.id)
    section = Section(name="A", course_id=course.id)
    db_session.add_all([batch, section])
    await db_session.commit()
    return Cohort(db_session, course, batch, section)


@pytest.fixture()
def january_late_fee() -> LateFeeRule:
    return LateFeeRule(from_date=date(2024, 1, 1), to_date=date(2024, 1, 31), fine_amount=Decimal("500"))
