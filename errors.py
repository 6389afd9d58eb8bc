"""
Storefront error taxonomy

Validation errors are raised synchronously by the cart, gift and address
models and rendered as user-visible messages. Backend errors wrap any
non-2xx response or transport failure from the upstream commerce API.
"""

from enum import Enum
from typing import Any, Optional


class ValidationCode(str, Enum):
    MISSING_RECIPIENT = "MISSING_RECIPIENT"
    INCOMPLETE_ADDRESS = "INCOMPLETE_ADDRESS"
    MISSING_COORDINATES = "MISSING_COORDINATES"
    NOT_COMPLETING = "NOT_COMPLETING"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    GIFT_DISABLED = "GIFT_DISABLED"


MESSAGES = {
    ValidationCode.MISSING_RECIPIENT: "Please select a gift recipient",
    ValidationCode.INCOMPLETE_ADDRESS: "Please fill all address fields",
    ValidationCode.MISSING_COORDINATES: "Please pick a location on the map first",
    ValidationCode.NOT_COMPLETING: "Confirm the location before saving the address",
    ValidationCode.MESSAGE_TOO_LONG: "Greeting message must be 200 characters or less",
    ValidationCode.GIFT_DISABLED: "Turn on gifting to choose gift options",
}


class ValidationError(Exception):
    def __init__(self, code: ValidationCode, message: Optional[str] = None):
        self.code = code
        self.message = message or MESSAGES[code]
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.code.value, "message": self.message}


class BackendError(Exception):
    """Upstream call failed: non-2xx status or no response at all."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class CheckoutError(Exception):
    """Navigation guard tripped at checkout (no user, empty cart, ...)."""

    def __init__(self, reason: str, message: str, status_code: int = 400):
        self.reason = reason
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.reason, "message": self.message}
