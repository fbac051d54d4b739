from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo

from posledger.domain.errors import ValidationError
from posledger.domain.models import Sale
from posledger.services.sales_service import sale_time

TIME_RANGES = ("today", "7days", "30days", "90days", "all")


@dataclass(frozen=True)
class DashboardStats:
    total_products: int
    low_stock_products: int
    total_sales: float
    today_sales: float
    total_profit: float
    total_inventory_value: float
    pending_offline_sales: int


@dataclass(frozen=True)
class MonthlyStats:
    total_sales: float
    total_transactions: int
    total_profit: float
    average_transaction: float


@dataclass(frozen=True)
class DailySales:
    date: str
    sales: int
    revenue: float


@dataclass(frozen=True)
class TopProduct:
    product_id: int
    name: str
    quantity: int
    revenue: float


@dataclass(frozen=True)
class SalesAnalytics:
    time_range: str
    total_revenue: float
    total_sales: int
    average_sale: float
    revenue_growth: float
    daily: list[DailySales]
    top_products: list[TopProduct]


def _revenue(sales: Iterable[Sale]) -> float:
    return round(sum(s.total for s in sales), 2)


def _within(sales: Iterable[Sale], start: datetime, end: Optional[datetime] = None) -> list[Sale]:
    out = []
    for s in sales:
        when = sale_time(s)
        if when is None or when < start:
            continue
        if end is not None and when >= end:
            continue
        out.append(s)
    return out


def _parse_iso(value: str, label: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{label} must be an ISO date/time.") from exc


class ReportingService:
    def __init__(self, inventory_service, sales_service, clock: Callable[[], datetime] | None = None):
        self.inventory = inventory_service
        self.sales = sales_service
        self.clock = clock or datetime.now

    def dashboard_stats(self) -> DashboardStats:
        products = self.inventory.list_products()
        sales = self.sales.list_sales()
        today = self.clock().date()
        return DashboardStats(
            total_products=len(products),
            low_stock_products=len(self.inventory.low_stock_products()),
            total_sales=_revenue(sales),
            today_sales=_revenue(s for s in sales if (sale_time(s) or datetime.min).date() == today),
            total_profit=round(sum(s.total_profit for s in sales), 2),
            total_inventory_value=round(sum(p.selling_price * p.stock for p in products), 2),
            pending_offline_sales=len(self.sales.list_pending_offline_sales()),
        )

    def monthly_stats(self, year: int, month: int) -> MonthlyStats:
        if not 1 <= int(month) <= 12:
            raise ValidationError("Month must be between 1 and 12.")
        prefix = f"{int(year):04d}-{int(month):02d}"
        sales = [s for s in self.sales.list_sales() if s.created_at.startswith(prefix)]
        total = _revenue(sales)
        count = len(sales)
        return MonthlyStats(
            total_sales=total,
            total_transactions=count,
            total_profit=round(sum(s.total_profit for s in sales), 2),
            average_transaction=round(total / count, 2) if count else 0.0,
        )

    def monthly_sales_totals(self, months: int = 6) -> list[tuple[str, float]]:
        totals: dict[str, float] = defaultdict(float)
        for s in self.sales.list_sales():
            totals[s.created_at[:7]] += s.total
        keys = sorted(totals)[-int(months):] if months > 0 else []
        return [(k, round(totals[k], 2)) for k in keys]

    def sales_analytics(self, time_range: str = "7days") -> SalesAnalytics:
        if time_range not in TIME_RANGES:
            raise ValidationError(f"Unknown time range: {time_range}. Use one of {', '.join(TIME_RANGES)}.")

        now = self.clock()
        sales = self.sales.list_sales()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        if time_range == "today":
            current = _within(sales, midnight)
            previous = _within(sales, midnight - timedelta(days=1), midnight)
        elif time_range == "7days":
            current = _within(sales, now - timedelta(days=7))
            previous = _within(sales, now - timedelta(days=14), now - timedelta(days=7))
        elif time_range == "30days":
            current = _within(sales, now - timedelta(days=30))
            previous = _within(sales, now - timedelta(days=60), now - timedelta(days=30))
        elif time_range == "90days":
            current = _within(sales, now - timedelta(days=90))
            previous = []
        else:
            current = list(sales)
            previous = []

        total = _revenue(current)
        count = len(current)
        prev_total = _revenue(previous)
        growth = round((total - prev_total) / prev_total * 100, 2) if prev_total > 0 else 0.0

        return SalesAnalytics(
            time_range=time_range,
            total_revenue=total,
            total_sales=count,
            average_sale=round(total / count, 2) if count else 0.0,
            revenue_growth=growth,
            daily=self._daily_series(current),
            top_products=self._top_products(current),
        )

    def _daily_series(self, sales: Iterable[Sale]) -> list[DailySales]:
        counts: dict[str, int] = defaultdict(int)
        revenue: dict[str, float] = defaultdict(float)
        for s in sales:
            day = s.created_at[:10]
            counts[day] += 1
            revenue[day] += s.total
        return [DailySales(date=d, sales=counts[d], revenue=round(revenue[d], 2)) for d in sorted(counts)]

    def _top_products(self, sales: Iterable[Sale], limit: int = 10) -> list[TopProduct]:
        names: dict[int, str] = {}
        qty: dict[int, int] = defaultdict(int)
        revenue: dict[int, float] = defaultdict(float)
        for s in sales:
            for line in s.items:
                names.setdefault(line.product_id, line.name)
                qty[line.product_id] += line.quantity
                revenue[line.product_id] += line.line_total
        ranked = sorted(names, key=lambda pid: revenue[pid], reverse=True)[:limit]
        return [TopProduct(product_id=pid, name=names[pid], quantity=qty[pid], revenue=round(revenue[pid], 2)) for pid in ranked]

    def export_sales_report_excel(self, path: str, start_iso: str, end_iso: str) -> None:
        start = _parse_iso(start_iso, "Start")
        end = _parse_iso(end_iso, "End")
        wb = Workbook()

        def money(cell):
            cell.number_format = "#,##0.00"

        def pct(cell):
            cell.number_format = "0.00%"

        def bold_row(ws, r):
            for c in ws[r]:
                c.font = Font(bold=True)

        def set_widths(ws, widths: dict[str, int]):
            for col, w in widths.items():
                ws.column_dimensions[col].width = w

        def add_table(ws, name: str, start_row: int, start_col: int, end_row: int, end_col: int):
            ref = f"{get_column_letter(start_col)}{start_row}:{get_column_letter(end_col)}{end_row}"
            tab = Table(displayName=name, ref=ref)
            tab.tableStyleInfo = TableStyleInfo(
                name="TableStyleMedium9",
                showRowStripes=True,
                showColumnStripes=False,
            )
            ws.add_table(tab)

        sales_rows = self.sales.sales_between(start, end)
        revenue = _revenue(sales_rows)
        profit = round(sum(s.total_profit for s in sales_rows), 2)

        # -------- 1) Summary --------
        ws = wb.active
        ws.title = "Summary"
        ws["A1"] = "Summary"
        ws["A1"].font = Font(bold=True, size=14)

        ws["A3"] = "Window"
        ws["B3"] = f"{start_iso}  ->  {end_iso}"

        rows = [
            ("Sales count", len(sales_rows), "int"),
            ("Revenue", revenue, "money"),
            ("Gross Profit", profit, "money"),
            ("Average Sale", round(revenue / len(sales_rows), 2) if sales_rows else 0.0, "money"),
            ("Pending offline sales", len(self.sales.list_pending_offline_sales()), "int"),
        ]

        start_row = 5
        for i, (label, val, kind) in enumerate(rows):
            r = start_row + i
            ws[f"A{r}"] = label
            ws[f"B{r}"] = val
            if kind == "money":
                money(ws[f"B{r}"])

        set_widths(ws, {"A": 28, "B": 34})

        # -------- 2) Sales Detail --------
        ws2 = wb.create_sheet("Sales Detail")
        ws2.append([
            "Sale ID", "Datetime", "Employee",
            "Product ID", "Product Name",
            "Qty", "Unit Price", "Unit Cost",
            "Line Revenue", "Line Profit", "Margin %",
        ])
        bold_row(ws2, 1)

        out_row = 2
        for s in sales_rows:
            for it in s.items:
                margin_pct = (it.line_profit / it.line_total) if it.line_total else 0.0
                ws2.append([
                    int(s.id), s.created_at, s.employee,
                    int(it.product_id), it.name,
                    int(it.quantity), float(it.unit_price), float(it.unit_cost),
                    float(it.line_total), float(it.line_profit), float(margin_pct),
                ])
                money(ws2[f"G{out_row}"])
                money(ws2[f"H{out_row}"])
                money(ws2[f"I{out_row}"])
                money(ws2[f"J{out_row}"])
                pct(ws2[f"K{out_row}"])
                out_row += 1

        ws2.freeze_panes = "A2"
        set_widths(ws2, {
            "A": 16, "B": 22, "C": 20,
            "D": 16, "E": 30,
            "F": 6, "G": 12, "H": 12,
            "I": 14, "J": 14, "K": 10,
        })
        if ws2.max_row >= 2:
            add_table(ws2, "SalesDetail", 1, 1, ws2.max_row, 11)

        wb.save(path)
