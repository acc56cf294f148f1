"""Domain exceptions raised by billing services and mapped to HTTP by the app."""


class BillingError(Exception):
    """Base billing exception."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BillingError):
    """Referenced plan, subscription or user does not exist."""

    status_code = 404


class ConflictError(BillingError):
    """Request collides with existing state (duplicate, concurrent write)."""

    status_code = 409


class InvalidStateError(BillingError):
    """Transition attempted from a state that does not allow it."""


class InvalidTransitionError(BillingError):
    """Plan change violates the price ordering of an upgrade or downgrade."""


class PaymentInitiationError(BillingError):
    """The payment gateway could not be reached or rejected the initiation call."""


class AuthenticationError(BillingError):
    """Missing, invalid or expired credentials."""

    status_code = 401
