from .users import User, UserRole, SessionToken
from .catalog import Service, TierPackage
from .quotes import Quote, QuoteStatus, GuestQuoteToken
from .orders import Order, OrderStatus, Invoice, InvoiceSequence, TERMINAL_ORDER_STATUSES
from .proofs import ProofVersion, ProofStatus
from .bookings import Booking, BookingStatus, BookingDayCapacity, ACTIVE_BOOKING_STATUSES, SLOT_HOLDING_BOOKING_STATUSES
from .payments import Payment, PaymentMethod, PaymentStatus
from .settings import CalendarSettings, BlackoutDate, Setting

__all__ = [
    'User', 'UserRole', 'SessionToken',
    'Service', 'TierPackage',
    'Quote', 'QuoteStatus', 'GuestQuoteToken',
    'Order', 'OrderStatus', 'Invoice', 'InvoiceSequence', 'TERMINAL_ORDER_STATUSES',
    'ProofVersion', 'ProofStatus',
    'Booking', 'BookingStatus', 'BookingDayCapacity', 'ACTIVE_BOOKING_STATUSES', 'SLOT_HOLDING_BOOKING_STATUSES',
    'Payment', 'PaymentMethod', 'PaymentStatus',
    'CalendarSettings', 'BlackoutDate', 'Setting',
]
