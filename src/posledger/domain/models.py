from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional


class Connectivity(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"

    @property
    def is_cash_like(self) -> bool:
        return self is PaymentMethod.CASH


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    category: str
    cost_price: float
    selling_price: float
    stock: int
    min_stock: int = 0
    created_at: str = ""

    @property
    def profit_margin(self) -> Optional[float]:
        if self.cost_price == 0:
            return None
        return (self.selling_price - self.cost_price) / self.cost_price * 100

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            category=str(data["category"]),
            cost_price=float(data["cost_price"]),
            selling_price=float(data["selling_price"]),
            stock=int(data["stock"]),
            min_stock=int(data.get("min_stock", 0)),
            created_at=str(data.get("created_at", "")),
        )


@dataclass(frozen=True)
class SaleLine:
    product_id: int
    name: str
    quantity: int
    unit_price: float
    unit_cost: float
    line_total: float

    @property
    def line_profit(self) -> float:
        return round((self.unit_price - self.unit_cost) * self.quantity, 2)

    @classmethod
    def from_dict(cls, data: dict) -> "SaleLine":
        return cls(
            product_id=int(data["product_id"]),
            name=str(data["name"]),
            quantity=int(data["quantity"]),
            unit_price=float(data["unit_price"]),
            unit_cost=float(data["unit_cost"]),
            line_total=float(data["line_total"]),
        )


@dataclass(frozen=True)
class Sale:
    id: int
    items: tuple[SaleLine, ...]
    total: float
    total_profit: float
    created_at: str
    employee: str
    is_offline: bool = False
    payment_method: str = PaymentMethod.CASH.value
    amount_paid: float = 0.0
    change: float = 0.0

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.items)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["items"] = [asdict(line) for line in self.items]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Sale":
        return cls(
            id=int(data["id"]),
            items=tuple(SaleLine.from_dict(it) for it in data["items"]),
            total=float(data["total"]),
            total_profit=float(data["total_profit"]),
            created_at=str(data["created_at"]),
            employee=str(data["employee"]),
            is_offline=bool(data.get("is_offline", False)),
            payment_method=str(data.get("payment_method", PaymentMethod.CASH.value)),
            amount_paid=float(data.get("amount_paid", 0.0)),
            change=float(data.get("change", 0.0)),
        )


@dataclass(frozen=True)
class User:
    username: str
    name: str
    role: str
    secret_hash: str = field(default="", repr=False)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            username=str(data["username"]),
            name=str(data.get("name") or data["username"]),
            role=str(data["role"]),
            secret_hash=str(data.get("secret_hash", "")),
        )


@dataclass(frozen=True)
class Session:
    token: str
    username: str
    name: str
    role: str
    issued_at: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Session":
        return cls(
            token=str(data["token"]),
            username=str(data["username"]),
            name=str(data["name"]),
            role=str(data["role"]),
            issued_at=str(data["issued_at"]),
        )


def next_id(existing: Iterable[int], now: datetime) -> int:
    """Timestamp-derived id (epoch millis), bumped past the largest existing id."""
    candidate = int(now.timestamp() * 1000)
    highest = max(existing, default=0)
    return candidate if candidate > highest else highest + 1
