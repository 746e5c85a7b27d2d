from enum import Enum


class BookingStatus(str, Enum):
    RESERVATION_PENDING = "reservation_pending"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    CANCEL_PENDING = "cancel_pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RuleKind(str, Enum):
    RECURRING = "recurring"
    DATED = "dated"


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    CLOSED = "closed"
    PAST = "past"


class PaymentOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ReconciliationStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"
