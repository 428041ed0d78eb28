"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/User
  2xxx: Credits
  3xxx: Conversation
  4xxx: Order / Project
  5xxx: Settlement
  9xxx: System
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: Auth/User ---

class UsernameExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Username already exists", 409)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class InvalidCredentialsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Invalid username or password", 401)


class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "Account is disabled", 403)


class InvalidRefreshTokenError(AppError):
    def __init__(self) -> None:
        super().__init__(1005, "Refresh token is invalid or expired", 401)


class StaffOnlyError(AppError):
    def __init__(self) -> None:
        super().__init__(1006, "Staff account required", 403)


# --- 2xxx: Credits ---

class InsufficientCreditsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            f"Insufficient credits: required {required}, available {available}",
            422,
        )


# --- 3xxx: Conversation ---

class ConversationNotFoundError(AppError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(3001, f"Conversation not found: {conversation_id}", 404)


class ConversationClosedError(AppError):
    def __init__(self, conversation_id: str) -> None:
        super().__init__(3002, f"Conversation {conversation_id} is closed", 422)


class InvalidConversationTransitionError(AppError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            3003, f"Conversation cannot move from {current} to {target}", 422
        )


# --- 4xxx: Order / Project ---

class InvalidTransitionError(AppError):
    """INVALID_TRANSITION: status or payment_status change not permitted."""

    def __init__(self, field: str, current: str, target: str, reason: str = "") -> None:
        detail = f"{field} cannot change from {current} to {target}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(4001, detail, 422)
        self.field = field
        self.current = current
        self.target = target


class OrderNotFoundError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4004, f"Order not found: {order_id}", 404)


class ProjectNotFoundError(AppError):
    def __init__(self, project_id: str) -> None:
        super().__init__(4005, f"Project not found: {project_id}", 404)


class ConcurrentModificationError(AppError):
    def __init__(self, order_id: str) -> None:
        super().__init__(4009, f"Order {order_id} was modified concurrently, retry", 409)


class OrderNotReviewableError(AppError):
    def __init__(self, order_id: str, status: str) -> None:
        super().__init__(
            4010, f"Order {order_id} in status {status} cannot be reviewed", 422
        )


# --- 5xxx: Settlement ---

class StalePendingUpdateError(AppError):
    """STALE_PENDING_UPDATE: staged edit/refund missing or superseded."""

    def __init__(self, order_id: str, detail: str) -> None:
        super().__init__(5001, f"Pending update for order {order_id} is stale: {detail}", 409)


class MalformedPendingUpdateError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(5002, f"Malformed pending update: {detail}", 422)


class BankDetailsRequiredError(AppError):
    def __init__(self) -> None:
        super().__init__(5003, "Bank details are required for bank refunds", 422)


class InvalidWebhookSecretError(AppError):
    def __init__(self) -> None:
        super().__init__(5004, "Invalid webhook secret", 401)


# --- 9xxx: System ---

class ExternalServiceUnavailableError(AppError):
    """EXTERNAL_SERVICE_UNAVAILABLE: payment gateway / notification service failed."""

    def __init__(self, service: str, detail: str = "") -> None:
        message = f"External service unavailable: {service}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(9003, message, 503)
        self.service = service


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)
