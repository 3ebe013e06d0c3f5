"""Domain errors shared by the order service, the API and the storefront client."""

from __future__ import annotations

from typing import Optional


class FoodDashError(Exception):
    """Base class for every error raised by FoodDash code."""


class ValidationError(FoodDashError):
    """Malformed or incomplete input."""


class CartConflictError(ValidationError):
    """Item belongs to a different restaurant and the switch was not confirmed."""


class NotFoundError(FoodDashError):
    """Entity does not exist or is not visible to the caller."""


class InvalidStateError(FoodDashError):
    """Operation is not allowed in the entity's current lifecycle state."""


class TransactionError(FoodDashError):
    """The order-creation transaction failed and was rolled back."""


class UpstreamError(FoodDashError):
    """A collaborator (the API or the payment provider) failed."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PaymentRecordingError(UpstreamError):
    """The card was charged but the order could not be marked as paid."""

    def __init__(self, order_id: int, order_number: Optional[str], transaction_id: str, *, status_code: Optional[int] = None) -> None:
        reference = order_number or order_id
        super().__init__(
            f"Payment processed but order update failed. Please contact support with order #{reference}",
            status_code=status_code,
        )
        self.order_id = order_id
        self.order_number = order_number
        self.transaction_id = transaction_id
