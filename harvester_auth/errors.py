"""Failure kinds of the OTP flow.

Each error carries a stable ``kind`` for clients, an HTTP status and a
human-readable message. Messages never include the code or its digest.
"""
from __future__ import annotations


class OtpError(Exception):
    kind = "internal"
    status_code = 500
    message = "Something went wrong, please try again"
    retryable = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.kind, "message": self.message}


class InvalidArgument(OtpError):
    kind = "invalid-argument"
    status_code = 400
    message = "Invalid phone number"


class NotFound(OtpError):
    kind = "not-found"
    status_code = 404
    message = "OTP not found, please request a new one"


class Expired(OtpError):
    kind = "expired"
    status_code = 410
    message = "OTP expired, please request a new one"


class Mismatched(OtpError):
    kind = "mismatched"
    status_code = 401
    message = "Wrong OTP"


class DeliveryFailed(OtpError):
    kind = "delivery-failed"
    status_code = 502
    message = "Failed to send OTP"


class Unavailable(OtpError):
    kind = "unavailable"
    status_code = 503
    message = "Service temporarily unavailable, please retry"
    retryable = True
