# Overview: API error taxonomy; every class maps to one HTTP status and a JSON body.

"""
Error taxonomy for the ManufactureERP API.

Services raise these; the error handler registered in create_app() turns
them into {"error": <kind>, "message": <text>} with the class's status code.
Anything that is not an ApiError is logged and reported as a generic 500.
"""


class ApiError(Exception):
    status_code = 500
    kind = "ServerError"
    default_message = "Server error. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


# -- 401 ---------------------------------------------------------------------

class UnauthorizedError(ApiError):
    status_code = 401
    kind = "Unauthorized"
    default_message = "Authentication required."


class MissingTokenError(UnauthorizedError):
    kind = "MissingToken"
    default_message = "Access token required."


class InvalidTokenError(UnauthorizedError):
    """Raised for tampered, malformed or wrong-purpose credentials."""
    kind = "InvalidSignature"
    default_message = "Invalid token."


class TokenExpiredError(UnauthorizedError):
    kind = "Expired"
    default_message = "Token expired."


class UserNotFoundError(UnauthorizedError):
    kind = "UserNotFound"
    default_message = "Invalid token - user not found."


# -- 403 ---------------------------------------------------------------------

class ForbiddenError(ApiError):
    status_code = 403
    kind = "Forbidden"
    default_message = "Access denied."


class AccountDeactivatedError(ForbiddenError):
    kind = "AccountDeactivated"
    default_message = "Account deactivated."


# -- 404 / 409 ---------------------------------------------------------------

class NotFoundError(ApiError):
    status_code = 404
    kind = "NotFound"
    default_message = "Not found."


class ConflictError(ApiError):
    status_code = 409
    kind = "Conflict"
    default_message = "Conflict."


# -- 400 ---------------------------------------------------------------------

class ValidationError(ApiError, ValueError):
    """400-level input problem."""
    status_code = 400
    kind = "ValidationError"
    default_message = "Invalid request."


class InvalidMovementTypeError(ValidationError):
    kind = "InvalidMovementType"
    default_message = "Invalid movement type. Must be: in, out, adjustment, or transfer."


class InvalidQuantityError(ValidationError):
    kind = "InvalidQuantity"
    default_message = "Quantity must be greater than 0."


class InsufficientStockError(ApiError):
    """Business rule: a balance may never go below zero."""
    status_code = 400
    kind = "InsufficientStock"
    default_message = "Insufficient stock quantity for this movement."
