"""Custom exceptions for the storefront application."""


class StoreError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv


class BusinessLogicError(StoreError):
    """Exception raised for business logic violations."""
    def __init__(self, message, status_code=400, payload=None):
        super().__init__(message, status_code, payload)


class ValidationError(BusinessLogicError):
    """Raised when user supplied data (address, contact, card) is incomplete or malformed."""
    def __init__(self, message, field=None):
        super().__init__(message, status_code=422, payload={'field': field} if field else None)
        self.field = field


class NotFoundError(StoreError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", payload=None):
        super().__init__(message, 404, payload)


class CartUnavailableError(StoreError):
    """Raised when no active cart can be resolved for the caller."""
    def __init__(self, message="Active cart not found."):
        super().__init__(message, 409)


class InactiveProductError(BusinessLogicError):
    """Raised when a cart line references a variant that is no longer on sale."""
    def __init__(self, variant_name):
        self.variant_name = variant_name
        super().__init__(
            f'"{variant_name}" is currently not available for sale.',
            status_code=409,
            payload={'variant': variant_name},
        )


class InsufficientStockError(BusinessLogicError):
    """Raised when an operation fails due to lack of stock."""
    def __init__(self, variant_name, requested, available):
        self.variant_name = variant_name
        self.requested = int(requested)
        self.available = int(available)
        message = (
            f'Not enough stock for "{variant_name}": '
            f'requested {self.requested}, available {self.available}'
        )
        super().__init__(
            message,
            status_code=409,
            payload={'variant': variant_name, 'requested': self.requested, 'available': self.available},
        )


class UnauthorizedError(StoreError):
    """Raised when a user lacks permission for an action."""
    def __init__(self, message="Unauthorized access", status_code=403):
        super().__init__(message, status_code)
