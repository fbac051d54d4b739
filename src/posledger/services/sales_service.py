from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from posledger.domain.errors import (
    EmptyCartError,
    InsufficientPaymentError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from posledger.domain.models import Connectivity, PaymentMethod, Sale, SaleLine, Session, next_id
from posledger.domain.validation import parse_count, parse_id, parse_money, require_text
from posledger.repositories.ledger_repo import LedgerRepository
from posledger.repositories.unit_of_work import RepositoryUnitOfWork, UnitOfWork
from posledger.services.confirmation_service import ConfirmationService, PendingAction
from posledger.services.inventory_service import InventoryService

log = logging.getLogger("posledger.sales")
sync_log = logging.getLogger("posledger.sync")


def _parse_connectivity(value: Connectivity | str) -> Connectivity:
    try:
        return Connectivity(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown connectivity state: {value!r}") from exc


def _parse_payment_method(value: PaymentMethod | str) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown payment method: {value!r}") from exc


class SalesService:
    def __init__(
        self,
        repo: LedgerRepository,
        inventory: InventoryService,
        confirmations: ConfirmationService | None = None,
        clock: Callable[[], datetime] | None = None,
        uow_factory: Callable[[], UnitOfWork] | None = None,
    ):
        self.repo = repo
        self.inventory = inventory
        self.clock = clock or datetime.now
        self.confirmations = confirmations or ConfirmationService(clock=self.clock)
        self.uow_factory = uow_factory or (lambda: RepositoryUnitOfWork(repo))

    def record_sale(
        self,
        items: Iterable[dict],
        employee: str | Session,
        amount_paid: float | str | None = None,
        connectivity: Connectivity | str = Connectivity.ONLINE,
        payment_method: PaymentMethod | str = PaymentMethod.CASH,
    ) -> Sale:
        """
        items: [{product_id, quantity}]

        Prices and costs are snapshotted from the catalog at the time of sale.
        Stock check and decrement use the state read at the start of the call.
        """
        items = list(items)
        if not items:
            raise EmptyCartError("Cart is empty.")

        if isinstance(employee, Session):
            employee = employee.name
        employee = require_text(employee, "Employee")
        state = _parse_connectivity(connectivity)
        method = _parse_payment_method(payment_method)

        products = self.inventory.load_catalog()
        by_id = {p.id: p for p in products}

        # Aggregate qty by product so repeated lines cannot oversell
        qty_by_product: Counter[int] = Counter()
        order: list[int] = []
        for it in items:
            try:
                product_id = int(it["product_id"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError("Each cart item needs a product_id.") from exc
            qty = parse_count(it.get("quantity"), "Quantity", minimum=1)
            if product_id not in by_id:
                raise NotFoundError(f"Product {product_id} not found.")
            if product_id not in qty_by_product:
                order.append(product_id)
            qty_by_product[product_id] += qty

        for product_id in order:
            prod = by_id[product_id]
            if qty_by_product[product_id] > prod.stock:
                raise InsufficientStockError(
                    f"Not enough stock for {prod.name}. Available: {prod.stock}",
                    product_id=prod.id,
                    available=prod.stock,
                )

        lines = tuple(
            SaleLine(
                product_id=pid,
                name=by_id[pid].name,
                quantity=qty_by_product[pid],
                unit_price=by_id[pid].selling_price,
                unit_cost=by_id[pid].cost_price,
                line_total=round(by_id[pid].selling_price * qty_by_product[pid], 2),
            )
            for pid in order
        )
        total = round(sum(by_id[pid].selling_price * qty_by_product[pid] for pid in order), 2)
        profit = round(
            sum((by_id[pid].selling_price - by_id[pid].cost_price) * qty_by_product[pid] for pid in order),
            2,
        )

        if method.is_cash_like:
            if amount_paid is None:
                raise ValidationError("Amount paid is required for cash payments.")
            paid = parse_money(amount_paid, "Amount paid")
            if paid < total:
                raise InsufficientPaymentError(f"Amount paid {paid:.2f} is less than total {total:.2f}.")
        else:
            paid = total
        change = round(paid - total, 2)

        main_log = self.repo.load_sales()
        pending = self.repo.load_offline_sales()
        now = self.clock()
        offline = state is Connectivity.OFFLINE
        sale = Sale(
            id=next_id((s.id for s in (*main_log, *pending)), now),
            items=lines,
            total=total,
            total_profit=profit,
            created_at=now.replace(microsecond=0).isoformat(),
            employee=employee,
            is_offline=offline,
            payment_method=method.value,
            amount_paid=round(paid, 2),
            change=change,
        )

        updated_products = [
            replace(p, stock=p.stock - qty_by_product[p.id]) if p.id in qty_by_product else p
            for p in products
        ]

        with self.uow_factory() as uow:
            uow.stage_products(updated_products)
            if offline:
                uow.stage_offline_sales([*pending, sale])
            else:
                uow.stage_sales([*main_log, sale])

        log.info(
            "sale_recorded sale_id=%s items=%s total=%.2f profit=%.2f offline=%s employee=%s",
            sale.id, len(lines), total, profit, offline, employee,
        )
        return sale

    def list_sales(self) -> list[Sale]:
        return self.repo.load_sales()

    def get_sale(self, sale_id: int) -> Sale:
        sid = parse_id(sale_id, "Sale id")
        for s in self.repo.load_sales():
            if s.id == sid:
                return s
        raise NotFoundError(f"Sale {sale_id} not found.")

    def list_pending_offline_sales(self) -> list[Sale]:
        return self.repo.load_offline_sales()

    def sync_pending_offline_sales(self) -> int:
        """Move every queued offline sale into the main log.

        The merged log is written before the emptied queue. Stores without
        multi-key transactions can duplicate records if the process dies
        between the two writes; the next sync does not deduplicate.
        """
        pending = self.repo.load_offline_sales()
        if not pending:
            return 0

        main_log = self.repo.load_sales()
        merged = [*main_log, *(replace(s, is_offline=False) for s in pending)]

        with self.uow_factory() as uow:
            uow.stage_sales(merged)
            uow.stage_offline_sales([])

        sync_log.info("offline_sales_synced moved=%s main_log=%s", len(pending), len(merged))
        return len(pending)

    def delete_sale(self, sale_id: int) -> bool:
        """Bookkeeping correction only; stock is not restored."""
        sid = parse_id(sale_id, "Sale id")
        sales = self.repo.load_sales()
        remaining = [s for s in sales if s.id != sid]
        if len(remaining) == len(sales):
            return False
        self.repo.save_sales(remaining)
        log.info("sale_deleted sale_id=%s", sale_id)
        return True

    def request_delete_sale(self, sale_id: int) -> PendingAction:
        sale = self.get_sale(sale_id)
        return self.confirmations.request("delete_sale", sale.id, total=sale.total)

    def confirm_delete_sale(self, token: str) -> bool:
        pending = self.confirmations.confirm(token, "delete_sale")
        return self.delete_sale(pending.target_id)

    def sales_between(self, start: datetime, end: datetime, include_pending: bool = False) -> list[Sale]:
        sales = self.repo.load_sales()
        if include_pending:
            sales = [*sales, *self.repo.load_offline_sales()]
        window = []
        for s in sales:
            when = sale_time(s)
            if when is not None and start <= when < end:
                window.append(s)
        return window


def sale_time(sale: Sale) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(sale.created_at)
    except ValueError:
        return None
