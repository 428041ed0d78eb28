"""Global enums — must match DB CHECK constraints exactly.

Values are lowercase because they are shown verbatim to storefront clients and
used as keys by the dashboard's badge/label lookup.
"""

from enum import Enum


class OrderStatus(str, Enum):
    SUBMITTED = "submitted"
    IN_QUEUE = "in_queue"
    PRINTING = "printing"
    FINISHED = "finished"
    DELIVERED = "delivered"
    ON_HOLD = "on_hold"
    SUSPENDED = "suspended"
    REFUND_REQUESTED = "refund_requested"


class PaymentStatus(str, Enum):
    ON_HOLD = "on_hold"
    PAID = "paid"
    REFUNDING = "refunding"
    REFUNDED = "refunded"


class PaymentPath(str, Enum):
    """How a new order is paid: captured from credits at once, or via the gateway later."""
    CREDITS = "credits"
    GATEWAY = "gateway"


class RefundMethod(str, Enum):
    CREDIT = "credit"
    BANK = "bank"
    ORIGINAL = "original"


class RefundReason(str, Enum):
    PRICE_REDUCTION = "price_reduction"
    CANCELLATION = "cancellation"
    CUSTOMER_REQUEST = "customer_request"


class StagedCommandKind(str, Enum):
    EDIT = "edit"
    CANCEL = "cancel"


class ShippingMethod(str, Enum):
    PICKUP = "pickup"
    INPOST = "inpost"
    DPD = "dpd"
    COURIER = "courier"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"


class SenderRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    SYSTEM = "system"


class ConversationStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class LedgerEntryType(str, Enum):
    # Credits bought with real money
    PURCHASE = "PURCHASE"
    # Refund settled as store credit
    REFUND_CREDIT = "REFUND_CREDIT"
    # Order paid out of the credit balance
    ORDER_PAYMENT = "ORDER_PAYMENT"
    # Manual correction by staff
    ADMIN_ADJUSTMENT = "ADMIN_ADJUSTMENT"


class NotificationKind(str, Enum):
    ORDER_STATUS_CHANGE = "order_status_change"
    REFUND_REQUESTED = "refund_requested"
    REFUND_PROCESSED = "refund_processed"
    PAYMENT_CONFIRMED = "payment_confirmed"
