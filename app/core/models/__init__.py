from app.core.models.course import Course
from app.core.models.batch import Batch
from app.core.models.section import Section
from app.core.models.student import Student
from app.core.models.fee_plan import FeePlan
from app.core.models.fee_payment import FeePayment

__all__ = [
    "Batch",
    "Course",
    "FeePayment",
    "FeePlan",
    "Section",
    "Student",
]
