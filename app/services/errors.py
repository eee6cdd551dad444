"""
Checkout error taxonomy
"""
from typing import Optional


class CheckoutError(Exception):
    """Base class for checkout flow failures"""


class ValidationError(CheckoutError):
    """Incomplete booking form; raised before any network call"""


class GatewayError(CheckoutError):
    """Token request or payment failure reported by the gateway"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RegistrationError(CheckoutError):
    """Account creation / sign-in failed after payment succeeded.

    ``conflict`` is set when the e-mail already belongs to an account with a
    different password; the customer has to log in manually.
    """

    def __init__(self, message: str, conflict: bool = False):
        super().__init__(message)
        self.conflict = conflict


class PersistenceError(CheckoutError):
    """Booking write failed after payment succeeded"""


class IllegalTransitionError(CheckoutError):
    """Action not allowed in the current checkout state"""


class AuthProviderError(Exception):
    """Identity provider failure with a discriminable code"""

    EMAIL_ALREADY_IN_USE = "auth/email-already-in-use"
    WRONG_PASSWORD = "auth/wrong-password"
    USER_NOT_FOUND = "auth/user-not-found"
    INVALID_EMAIL = "auth/invalid-email"
    WEAK_PASSWORD = "auth/weak-password"

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message
