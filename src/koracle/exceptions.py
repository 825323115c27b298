"""Custom exceptions for the K-factor price oracle.

Every error raised by the store, the estimator, the cache and the gateway
derives from OracleError so the API layer can translate them in one place.
"""


class OracleError(Exception):
    """Base exception for all oracle errors."""


class ValidationError(OracleError):
    """Raised for zero/invalid amounts, empty keys or out-of-order timestamps."""


class UnknownTokenError(ValidationError):
    """Raised when token metadata is required but the token is not registered."""


class StateError(OracleError):
    """Raised when an operation is not valid for the token's current state."""


class EmptyHistoryError(StateError):
    """Raised when reading a token that has no price observations."""

    def __init__(self, token: str) -> None:
        super().__init__(f"no price observations recorded for token {token!r}")
        self.token = token


class PaymentError(OracleError):
    """Raised when a paid query is not adequately paid."""


class InsufficientPaymentError(PaymentError):
    """Raised when a query payment is below the configured minimum fee."""

    def __init__(self, payment: int, minimum_fee: int) -> None:
        super().__init__(f"payment {payment} is below minimum fee {minimum_fee}")
        self.payment = payment
        self.minimum_fee = minimum_fee


class FixedPointError(OracleError, ArithmeticError):
    """Raised when fixed-point arithmetic would overflow or divide by zero."""


class Uint256OverflowError(FixedPointError, OverflowError):
    """Raised when a value does not fit the unsigned 256-bit range."""


class FixedPointDivisionError(FixedPointError, ZeroDivisionError):
    """Raised when a fixed-point computation would divide by zero."""
