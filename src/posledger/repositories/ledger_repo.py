from __future__ import annotations

import json
from typing import Callable, Iterable, Mapping, Optional, TypeVar

from posledger.domain.errors import PersistenceError
from posledger.domain.models import Product, Sale, Session, User
from posledger.repositories.kv_store import KeyValueStore

PRODUCTS_KEY = "pos_products"
SALES_KEY = "pos_sales"
OFFLINE_SALES_KEY = "pos_offline_sales"
SESSION_KEY = "pos_user"
USERS_KEY = "pos_users"

T = TypeVar("T")


class LedgerRepository:
    """Typed access to the fixed-key collections of the store.

    Every write replaces a whole collection; there is no row-level update.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    # ---------- Encoding ----------
    @staticmethod
    def encode_records(records: Iterable[Product | Sale | User]) -> str:
        return json.dumps([r.to_dict() for r in records], ensure_ascii=False)

    def _read_json(self, key: str):
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise PersistenceError(f"Stored value for '{key}' is not valid JSON.") from exc

    def _read_records(self, key: str, decode: Callable[[dict], T]) -> Optional[list[T]]:
        data = self._read_json(key)
        if data is None:
            return None
        if not isinstance(data, list):
            raise PersistenceError(f"Stored value for '{key}' is not a list.")
        try:
            return [decode(item) for item in data]
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Stored record in '{key}' is malformed: {exc}") from exc

    def write_collections(self, values: Mapping[str, str]) -> None:
        self.store.set_many(values)

    # ---------- Products ----------
    def load_products(self) -> Optional[list[Product]]:
        """``None`` when the products key was never written."""
        return self._read_records(PRODUCTS_KEY, Product.from_dict)

    def save_products(self, products: Iterable[Product]) -> None:
        self.store.set(PRODUCTS_KEY, self.encode_records(products))

    # ---------- Sales ----------
    def load_sales(self) -> list[Sale]:
        return self._read_records(SALES_KEY, Sale.from_dict) or []

    def save_sales(self, sales: Iterable[Sale]) -> None:
        self.store.set(SALES_KEY, self.encode_records(sales))

    def load_offline_sales(self) -> list[Sale]:
        return self._read_records(OFFLINE_SALES_KEY, Sale.from_dict) or []

    # ---------- Users / session ----------
    def load_users(self) -> list[User]:
        return self._read_records(USERS_KEY, User.from_dict) or []

    def save_users(self, users: Iterable[User]) -> None:
        self.store.set(USERS_KEY, self.encode_records(users))

    def load_session(self) -> Optional[Session]:
        data = self._read_json(SESSION_KEY)
        if data is None:
            return None
        try:
            return Session.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Stored session is malformed: {exc}") from exc

    def save_session(self, session: Session) -> None:
        self.store.set(SESSION_KEY, json.dumps(session.to_dict(), ensure_ascii=False))

    def clear_session(self) -> None:
        self.store.remove(SESSION_KEY)
