from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Mapping

from posledger.domain.errors import NotFoundError, PersistenceError, ValidationError
from posledger.domain.models import Product, next_id
from posledger.domain.validation import parse_count, parse_id, parse_money, require_text
from posledger.repositories.ledger_repo import LedgerRepository
from posledger.services.confirmation_service import ConfirmationService, PendingAction

log = logging.getLogger(__name__)

DEFAULT_CATALOG: tuple[Product, ...] = (
    Product(id=1, name="Coffee", category="Beverages", cost_price=1.0, selling_price=2.5, stock=100, min_stock=20),
    Product(id=2, name="Sandwich", category="Food", cost_price=3.0, selling_price=5.99, stock=50, min_stock=10),
    Product(id=3, name="Chips", category="Snacks", cost_price=0.8, selling_price=1.99, stock=75, min_stock=15),
    Product(id=4, name="Soda", category="Beverages", cost_price=0.6, selling_price=1.5, stock=80, min_stock=15),
)


def _clean_field(name: str, value: object):
    if name == "name":
        return require_text(value, "Name")
    if name == "category":
        return require_text(value, "Category")
    if name == "cost_price":
        return parse_money(value, "Cost price")
    if name == "selling_price":
        return parse_money(value, "Selling price")
    if name == "stock":
        return parse_count(value, "Stock")
    if name == "min_stock":
        return parse_count(value, "Min stock")
    raise ValidationError(f"Unknown product field: {name}")


class InventoryService:
    def __init__(
        self,
        repo: LedgerRepository,
        confirmations: ConfirmationService | None = None,
        clock: Callable[[], datetime] | None = None,
        low_stock_threshold: int | None = None,
    ):
        self.repo = repo
        self.clock = clock or datetime.now
        self.confirmations = confirmations or ConfirmationService(clock=self.clock)
        self.low_stock_threshold = low_stock_threshold

    def list_products(self) -> list[Product]:
        try:
            products = self.repo.load_products()
        except PersistenceError as e:
            log.warning("products_unreadable error=%s; treating store as empty", e)
            products = None
        if products is not None:
            return products

        seeded = self._default_catalog()
        try:
            self.repo.save_products(seeded)
            log.info("catalog_seeded products=%s", len(seeded))
        except PersistenceError as e:
            log.error("catalog_seed_failed error=%s", e)
        return seeded

    def load_catalog(self) -> list[Product]:
        """Products for a read-modify-write.

        Read failures propagate. A never-written store yields the default
        catalog without writing it; the caller persists it with its change.
        """
        products = self.repo.load_products()
        if products is None:
            return self._default_catalog()
        return products

    def _default_catalog(self) -> list[Product]:
        return [replace(p, created_at=self._now_iso()) for p in DEFAULT_CATALOG]

    def get_product(self, product_id: int) -> Product:
        pid = parse_id(product_id, "Product id")
        for p in self.load_catalog():
            if p.id == pid:
                return p
        raise NotFoundError(f"Product {product_id} not found.")

    def search_products(self, query: str) -> list[Product]:
        term = (query or "").strip().lower()
        products = self.list_products()
        if not term:
            return products
        return [p for p in products if term in p.name.lower() or term in p.category.lower()]

    def low_stock_products(self, threshold: int | None = None) -> list[Product]:
        limit = threshold if threshold is not None else self.low_stock_threshold
        if limit is None:
            return [p for p in self.list_products() if p.stock <= p.min_stock]
        return [p for p in self.list_products() if p.stock <= int(limit)]

    def add_product(
        self,
        name: str,
        category: str,
        cost_price: float,
        selling_price: float,
        initial_stock: int,
        min_stock: int = 0,
    ) -> Product:
        product_fields = {
            "name": _clean_field("name", name),
            "category": _clean_field("category", category),
            "cost_price": _clean_field("cost_price", cost_price),
            "selling_price": _clean_field("selling_price", selling_price),
            "stock": _clean_field("stock", initial_stock),
            "min_stock": _clean_field("min_stock", min_stock),
        }
        products = self.load_catalog()
        now = self.clock()
        product = Product(
            id=next_id((p.id for p in products), now),
            created_at=now.replace(microsecond=0).isoformat(),
            **product_fields,
        )
        self.repo.save_products([*products, product])
        log.info("product_added id=%s name=%s stock=%s", product.id, product.name, product.stock)
        return product

    def update_product(self, product_id: int, fields: Mapping[str, object]) -> Product:
        if "id" in fields:
            raise ValidationError("Product id cannot be changed.")
        pid = parse_id(product_id, "Product id")
        changes = {name: _clean_field(name, value) for name, value in fields.items()}

        products = self.load_catalog()
        for idx, p in enumerate(products):
            if p.id == pid:
                updated = replace(p, **changes)
                products[idx] = updated
                self.repo.save_products(products)
                log.info("product_updated id=%s fields=%s", updated.id, ",".join(sorted(changes)))
                return updated
        raise NotFoundError(f"Product {product_id} not found.")

    def delete_product(self, product_id: int) -> bool:
        pid = parse_id(product_id, "Product id")
        products = self.load_catalog()
        remaining = [p for p in products if p.id != pid]
        if len(remaining) == len(products):
            return False
        self.repo.save_products(remaining)
        log.info("product_deleted id=%s", product_id)
        return True

    def restock(self, product_id: int, added_quantity: int) -> Product:
        pid = parse_id(product_id, "Product id")
        qty = parse_count(added_quantity, "Restock quantity", minimum=1)
        products = self.load_catalog()
        for idx, p in enumerate(products):
            if p.id == pid:
                updated = replace(p, stock=p.stock + qty)
                products[idx] = updated
                self.repo.save_products(products)
                log.info("product_restocked id=%s added=%s stock=%s", p.id, qty, updated.stock)
                return updated
        raise NotFoundError(f"Product {product_id} not found.")

    # ---------- Two-step confirmations ----------
    def request_delete(self, product_id: int) -> PendingAction:
        product = self.get_product(product_id)
        return self.confirmations.request("delete_product", product.id, name=product.name)

    def confirm_delete(self, token: str) -> bool:
        pending = self.confirmations.confirm(token, "delete_product")
        return self.delete_product(pending.target_id)

    def request_restock(self, product_id: int, added_quantity: int) -> PendingAction:
        qty = parse_count(added_quantity, "Restock quantity", minimum=1)
        product = self.get_product(product_id)
        return self.confirmations.request("restock_product", product.id, quantity=qty)

    def confirm_restock(self, token: str) -> Product:
        pending = self.confirmations.confirm(token, "restock_product")
        return self.restock(pending.target_id, pending.payload["quantity"])

    def _now_iso(self) -> str:
        return self.clock().replace(microsecond=0).isoformat()

