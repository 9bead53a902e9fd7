"""
Notification error taxonomy

Every failure a notification sink can report is one of these. The ``code``
doubles as the wire value of the relay's ``{"error": ...}`` body, so callers
on either side of the HTTP hop can tell a terminal token failure from a
generic one.
"""

from typing import Optional

PERMISSION_DENIED = "permission-denied"
RECIPIENT_NOT_OPTED_IN = "recipient-not-opted-in"
RECIPIENT_NOT_FOUND = "recipient-not-found"
TOKEN_NOT_REGISTERED = "registration-token-not-registered"
DELIVERY_FAILED = "delivery-failed"


class NotificationError(Exception):
    code = DELIVERY_FAILED
    status_code = 500
    retryable = False

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.code)
        self.message = message or self.code


class PermissionDeniedError(NotificationError):
    """Local channel: the host refused notification permission."""

    code = PERMISSION_DENIED
    status_code = 403


class RecipientNotOptedInError(NotificationError):
    """Relay channel: no device token on file for the recipient."""

    code = RECIPIENT_NOT_OPTED_IN
    status_code = 400


class RecipientNotFoundError(NotificationError):
    code = RECIPIENT_NOT_FOUND
    status_code = 404


class TokenInvalidError(NotificationError):
    """Relay channel: the push provider no longer accepts the stored token.

    Terminal for this recipient until they register a new token.
    """

    code = TOKEN_NOT_REGISTERED
    status_code = 410


class DeliveryFailedError(NotificationError):
    code = DELIVERY_FAILED
    status_code = 502

    def __init__(self, message: Optional[str] = None, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        PermissionDeniedError,
        RecipientNotOptedInError,
        RecipientNotFoundError,
        TokenInvalidError,
    )
}
