"""Student record. fee_payment_ids is a back-reference list maintained by the fee payment service."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True)
    section_id = Column(Uuid, ForeignKey("sections.id", ondelete="SET NULL"), nullable=True)
    batch_id = Column(Uuid, ForeignKey("batches.id", ondelete="SET NULL"), nullable=True)
    semester = Column(Integer, nullable=True)
    academic_status = Column(String(20), nullable=False, default="Active")  # Active, OnLeave, Graduated, Withdrawn
    # Ids (as strings) of the student's fee payments, newest last
    fee_payment_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    course = relationship("Course")
    section = relationship("Section")
    batch = relationship("Batch")
