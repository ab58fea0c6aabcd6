"""Payment reconciliation exceptions."""

from __future__ import annotations

from typing import Optional

from rest_framework import status

from modules.orders.exceptions import SettlementError


class PaymentLookupFailed(SettlementError):
    """The provider transaction could not be fetched.

    ``retryable`` is ``True`` when the lookup failed on transient errors
    only; the caller may try again later.
    """

    code = "PAYMENT-LOOKUP-FAILED"
    message = "Payment provider lookup failed."
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, description: str = "", *, retryable: bool = False) -> None:
        self.retryable = retryable
        super().__init__(description)


class VerificationTimeout(PaymentLookupFailed):
    """The verification did not finish within its time budget."""

    code = "VERIFICATION-TIMEOUT"
    message = "Payment verification is still in progress; retry later."
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, description: str = "") -> None:
        super().__init__(description, retryable=True)


class PaymentNotCompleted(SettlementError):
    code = "PAYMENT-NOT-COMPLETED"
    message = "Payment has not been completed."


class PaymentAmountMismatch(SettlementError):
    code = "PAYMENT-AMOUNT-MISMATCH"
    message = "Paid amount does not match the receipt total."

    def __init__(self, expected: int, actual: Optional[int]) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected {expected}, provider reported {actual}.")


class PaymentReferenceMismatch(SettlementError):
    code = "PAYMENT-REFERENCE-MISMATCH"
    message = "Payment belongs to a different merchant reference."


class OrderNotYetCreated(SettlementError):
    """Payment arrived for a receipt whose orders do not exist yet."""

    code = "ORDER-NOT-YET-CREATED"
    message = "Orders for this payment have not been created yet."
    status_code = status.HTTP_409_CONFLICT


class InvalidOrderState(SettlementError):
    """Orders of the receipt are not all in the same reconcilable state."""

    code = "INVALID-ORDER-STATE"
    message = "Orders are not in a state that can be verified."
    status_code = status.HTTP_409_CONFLICT
