# services/errors.py
"""
Domain errors raised by the service layer.

Each error carries the HTTP status it maps to and a machine-readable
``code`` that the API returns next to the human message, e.g.
``{"detail": "Insufficient stock for product: Mouse", "code": "insufficient_stock"}``.
The mapping to responses is registered in ``main.py``.
"""


class ServiceError(Exception):
    status_code = 400
    default_code = "error"

    def __init__(self, message: str, code: str = None, **context):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.context = context


class ValidationFailed(ServiceError):
    status_code = 400
    default_code = "validation_error"


class NotFound(ServiceError):
    status_code = 404
    default_code = "not_found"


class Conflict(ServiceError):
    status_code = 409
    default_code = "conflict"


class InsufficientStock(ServiceError):
    status_code = 400
    default_code = "insufficient_stock"


class InactiveEntity(ServiceError):
    status_code = 400
    default_code = "inactive_entity"


class Unauthorized(ServiceError):
    status_code = 401
    default_code = "unauthorized"
