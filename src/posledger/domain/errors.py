class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class NotFoundError(AppError):
    pass


class EmptyCartError(AppError):
    pass


class InsufficientStockError(AppError):
    def __init__(self, message: str, product_id: int | None = None, available: int | None = None):
        super().__init__(message)
        self.product_id = product_id
        self.available = available


class InsufficientPaymentError(AppError):
    pass


class PersistenceError(AppError):
    pass


class AuthorizationError(AppError):
    pass
