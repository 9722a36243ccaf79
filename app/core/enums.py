from enum import Enum


class FeePaymentStatus(str, Enum):
    pending = "pending"
    partially_paid = "partially_paid"
    fully_paid = "fully_paid"
    overdue = "overdue"
    waived = "waived"


class TransactionStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"
    refunded = "refunded"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "Credit Card"
    DEBIT_CARD = "Debit Card"
    UPI = "UPI"
    BANK_TRANSFER = "Bank Transfer"
    CASH = "Cash"
    OTHER = "Other"


class HistoryEntryType(str, Enum):
    payment = "payment"
    scholarship = "scholarship"
    late_fee = "late_fee"
    discount = "discount"
    refund = "refund"
    waived = "waived"


class AdjustmentKind(str, Enum):
    scholarship = "scholarship"
    discount = "discount"


class FeePlanStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    archived = "archived"

