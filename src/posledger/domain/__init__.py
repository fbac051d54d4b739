from .models import Product, Sale, SaleLine, Connectivity, PaymentMethod, User, Session
from .errors import (
    AppError,
    ValidationError,
    NotFoundError,
    EmptyCartError,
    InsufficientStockError,
    InsufficientPaymentError,
    PersistenceError,
    AuthorizationError,
)

__all__ = [
    "Product",
    "Sale",
    "SaleLine",
    "Connectivity",
    "PaymentMethod",
    "User",
    "Session",
    "AppError",
    "ValidationError",
    "NotFoundError",
    "EmptyCartError",
    "InsufficientStockError",
    "InsufficientPaymentError",
    "PersistenceError",
    "AuthorizationError",
]
