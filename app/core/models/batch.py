"""Batch of a course, identified by its start and end year (e.g. 2023-2027)."""

import uuid

from sqlalchemy import Column, ForeignKey, Integer, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base


class Batch(Base):
    __tablename__ = "batches"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    start_year = Column(Integer, nullable=False)
    end_year = Column(Integer, nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)

    course = relationship("Course")
