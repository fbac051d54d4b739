from __future__ import annotations

import csv
import io
import logging
from pathlib import Path
from typing import Iterable, Optional

from posledger.domain.errors import ValidationError
from posledger.domain.models import Product, Sale

log = logging.getLogger(__name__)

PRODUCT_HEADERS = ["ID", "Name", "Category", "Buying Price", "Selling Price", "Stock", "Profit Margin"]
SALE_HEADERS = ["Sale ID", "Date", "Employee", "Total", "Profit", "Items"]


def _to_csv(rows: Iterable[list]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue().rstrip("\n")


def _margin(p: Product) -> str:
    margin = p.profit_margin
    return "N/A" if margin is None else f"{margin:.2f}%"


def _items_text(sale: Sale) -> str:
    return "; ".join(f"{line.name} x{line.quantity}" for line in sale.items)


class ExportService:
    def __init__(self, inventory_service, sales_service):
        self.inventory = inventory_service
        self.sales = sales_service

    def products_csv(self) -> str:
        rows = [PRODUCT_HEADERS]
        for p in self.inventory.list_products():
            rows.append([
                p.id, p.name, p.category,
                f"{p.cost_price:.2f}", f"{p.selling_price:.2f}",
                p.stock, _margin(p),
            ])
        return _to_csv(rows)

    def sales_csv(self, month: Optional[str] = None, include_pending: bool = True) -> str:
        """``month`` is a ``YYYY-MM`` prefix matched against the sale date."""
        if month is not None and (len(month) != 7 or month[4] != "-" or not (month[:4] + month[5:]).isdigit()):
            raise ValidationError("Month must look like YYYY-MM.")

        sales = self.sales.list_sales()
        if include_pending:
            sales = [*sales, *self.sales.list_pending_offline_sales()]
        if month:
            sales = [s for s in sales if s.created_at.startswith(month)]

        rows = [SALE_HEADERS]
        for s in sales:
            rows.append([
                s.id, s.created_at, s.employee,
                f"{s.total:.2f}", f"{s.total_profit:.2f}",
                _items_text(s),
            ])
        return _to_csv(rows)

    def write_products_csv(self, path: Path | str) -> Path:
        return self._write(path, self.products_csv())

    def write_sales_csv(self, path: Path | str, month: Optional[str] = None, include_pending: bool = True) -> Path:
        return self._write(path, self.sales_csv(month=month, include_pending=include_pending))

    def _write(self, path: Path | str, content: str) -> Path:
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content + "\n", encoding="utf-8", newline="")
        log.info("csv_exported path=%s", target)
        return target
