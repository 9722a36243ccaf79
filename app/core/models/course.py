"""Course master (e.g. BTech, MBA). Read by the ledger core for labels and filters."""

import uuid

from sqlalchemy import Column, Integer, String, Uuid

from app.db.session import Base


class Course(Base):
    __tablename__ = "courses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False, unique=True)
    duration = Column(Integer, nullable=False)  # years
