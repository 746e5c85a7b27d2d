# Importing the package registers every table on Base.metadata
from app.models.studio import Studio  # noqa: F401
from app.models.availability_rule import AvailabilityRule  # noqa: F401
from app.models.studio_service import StudioService  # noqa: F401
from app.models.equipment import Equipment  # noqa: F401
from app.models.booking import Booking  # noqa: F401
from app.models.booking_slot import BookingSlot  # noqa: F401
from app.models.payment_reconciliation import PaymentReconciliation  # noqa: F401
