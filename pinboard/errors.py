from __future__ import annotations


class PinboardError(Exception):
    """Base error; the API renders it as ``{"msg": detail}`` with ``status_code``."""

    status_code = 500
    detail = "Server error"

    def __init__(self, detail: str | None = None):
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class StoreUnavailable(PinboardError):
    status_code = 503
    detail = "Store unavailable"


class NotFound(PinboardError):
    status_code = 404
    detail = "Pin not found"


class NotAuthorized(PinboardError):
    status_code = 401
    detail = "Not authorized"


class InvalidCredentials(PinboardError):
    status_code = 400
    detail = "Invalid credentials"


class UserExists(PinboardError):
    status_code = 400
    detail = "User already exists"


class ValidationFailed(PinboardError):
    status_code = 400
    detail = "Invalid request"
