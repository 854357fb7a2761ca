# storefront/errors.py
from flask import jsonify
from .utils.api import api_error


class StorefrontError(Exception):
    status_code = 400

    def __init__(self, message, data=None):
        super().__init__(message)
        self.message = message
        self.data = data or {}


class ValidationError(StorefrontError, ValueError):
    status_code = 422


class InsufficientStockError(ValidationError):
    """Raised before payment when one or more cart lines exceed available stock."""
    status_code = 409

    def __init__(self, shortfalls):
        self.shortfalls = shortfalls
        names = ", ".join(f"{s['name']} (only {s['available']} left)" for s in shortfalls)
        super().__init__(f"insufficient stock: {names}", {"shortfalls": shortfalls})


class InsufficientPointsError(ValidationError):
    pass


class InvalidTransitionError(StorefrontError):
    status_code = 409

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"cannot move from '{current}' to '{target}'",
            {"current": current, "target": target},
        )


class LedgerConflictError(StorefrontError):
    """The account kept changing underneath us; retries were exhausted."""
    status_code = 409


class NotFoundError(StorefrontError):
    status_code = 404


class PaymentError(StorefrontError):
    status_code = 402


class PaymentTimeoutError(PaymentError):
    status_code = 504


def register_error_handlers(app):
    @app.errorhandler(StorefrontError)
    def handle_storefront_error(e):
        r = jsonify(api_error(e.message, e.data))
        r.status_code = e.status_code
        return r

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        r = jsonify(api_error(str(e)))
        r.status_code = 422
        return r
