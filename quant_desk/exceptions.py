"""
Quant Desk domain exceptions.

Every exception carries the HTTP status the API reports for it; the mapping
lives here so services never import FastAPI.
"""


class QuantDeskError(Exception):
    """Base exception for Quant Desk errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(QuantDeskError):
    """Raised when no entity exists with the given id"""
    status_code = 404


class ForbiddenError(QuantDeskError):
    """Raised when the caller is authenticated but not permitted"""
    status_code = 403


class NameConflictError(QuantDeskError):
    """Raised when an owner already has a strategy with the same name (case-insensitive)"""
    status_code = 409


class AlreadyPublicError(QuantDeskError):
    """Raised when publishing a strategy that is already public"""
    status_code = 400


class AlreadyPrivateError(QuantDeskError):
    """Raised when unpublishing a strategy that is already private"""
    status_code = 400


class ValidationError(QuantDeskError):
    """Raised when field bounds are violated"""
    status_code = 400


class DuplicateUserError(QuantDeskError):
    """Raised when a username or email is already registered"""
    status_code = 400
