"""Fee payment (ledger entry): one per student per fee plan.

amount_paid, total_due and status are cached derived values. They are rewritten by the
recompute pass on every write path and are never set directly.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from app.core.enums import FeePaymentStatus
from app.db.session import Base


class FeePayment(Base):
    __tablename__ = "fee_payments"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_plan_id", name="uq_fee_payment_student_plan"),
        CheckConstraint(
            "status IN ('pending','partially_paid','fully_paid','overdue','waived')",
            name="chk_fee_payment_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_plan_id = Column(Uuid, ForeignKey("fee_plans.id", ondelete="RESTRICT"), nullable=False)
    course_id = Column(Uuid, ForeignKey("courses.id", ondelete="RESTRICT"), nullable=False)
    batch_id = Column(Uuid, ForeignKey("batches.id", ondelete="RESTRICT"), nullable=False)
    section_id = Column(Uuid, ForeignKey("sections.id", ondelete="SET NULL"), nullable=True)

    total_amount = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    total_due = Column(Numeric(12, 2), nullable=False, default=0)

    scholarship_applied = Column(Numeric(12, 2), nullable=False, default=0)
    custom_scholarship = Column(JSON, nullable=True)  # {type, amount}
    late_fee_applied = Column(Numeric(12, 2), nullable=False, default=0)
    discount_applied = Column(Numeric(12, 2), nullable=False, default=0)

    status = Column(String(20), nullable=False, default=FeePaymentStatus.pending.value)
    due_date = Column(Date, nullable=False)

    # [{transaction_id, amount, payment_method, status, payment_date, receipt_url, notes}]
    transactions = Column(JSON, nullable=False, default=list)
    # Append-only audit log: [{amount, type, description, date, recorded_by}]
    payment_history = Column(JSON, nullable=False, default=list)

    # Optimistic concurrency: a stale write raises StaleDataError instead of losing an update
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    student = relationship("Student")
    fee_plan = relationship("FeePlan")
    course = relationship("Course")
    batch = relationship("Batch")
    section = relationship("Section")
