"""Fee plan: fee template for a course/batch cohort. Read-only to the ledger core."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import FeePlanStatus
from app.db.session import Base


class FeePlan(Base):
    """
    Components, total, due date and the time-bounded schedules the ledger engine reads.
    scholarships: [{student_id, type, amount, from_date, to_date}] scoped to one student each.
    late_fees: [{from_date, to_date, fine_amount}] scoped to the whole plan.
    """

    __tablename__ = "fee_plans"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    batch_id = Column(Uuid, ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False)
    section_ids = Column(JSON, nullable=False, default=list)
    duration = Column(String(20), nullable=False)  # monthly, quarterly, semesterly, yearly
    due_date = Column(Date, nullable=False)

    fee_components = Column(JSON, nullable=False, default=list)  # [{fee_type, amount, tax}]
    total_fee = Column(Numeric(12, 2), nullable=False)
    late_fees = Column(JSON, nullable=False, default=list)
    scholarships = Column(JSON, nullable=False, default=list)

    additional_notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=FeePlanStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    course = relationship("Course")
    batch = relationship("Batch")
