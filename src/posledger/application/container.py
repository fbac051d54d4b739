from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from posledger.config import LedgerSettings
from posledger.repositories.kv_store import KeyValueStore, SqliteKeyValueStore
from posledger.repositories.ledger_repo import LedgerRepository
from posledger.services.auth_service import AuthService
from posledger.services.confirmation_service import ConfirmationService
from posledger.services.connectivity_service import ConnectivityService
from posledger.services.export_service import ExportService
from posledger.services.inventory_service import InventoryService
from posledger.services.reporting_service import ReportingService
from posledger.services.sales_service import SalesService


@dataclass(frozen=True)
class AppContainer:
    repo: LedgerRepository
    confirmations: ConfirmationService
    inventory: InventoryService
    sales: SalesService
    exports: ExportService
    reporting: ReportingService
    auth: AuthService
    connectivity: ConnectivityService


def build_container(
    store: KeyValueStore | Path | str,
    settings: LedgerSettings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> AppContainer:
    """``store`` is either a ready store object or a path to a SQLite file."""
    settings = settings or LedgerSettings()
    if isinstance(store, (str, Path)):
        sqlite_store = SqliteKeyValueStore(store)
        sqlite_store.init_db()
        store = sqlite_store

    repo = LedgerRepository(store)
    confirmations = ConfirmationService(ttl_seconds=settings.confirmation_ttl_seconds, clock=clock)
    inventory = InventoryService(
        repo,
        confirmations=confirmations,
        clock=clock,
        low_stock_threshold=settings.low_stock_threshold,
    )
    sales = SalesService(repo, inventory, confirmations=confirmations, clock=clock)
    exports = ExportService(inventory, sales)
    reporting = ReportingService(inventory, sales, clock=clock)
    auth = AuthService(repo, clock=clock)
    connectivity = ConnectivityService(
        probe_url=settings.connectivity_probe_url,
        timeout=settings.connectivity_timeout,
    )

    return AppContainer(
        repo=repo,
        confirmations=confirmations,
        inventory=inventory,
        sales=sales,
        exports=exports,
        reporting=reporting,
        auth=auth,
        connectivity=connectivity,
    )
