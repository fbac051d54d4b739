from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

from posledger.domain.models import Product, Sale
from posledger.repositories.ledger_repo import (
    OFFLINE_SALES_KEY,
    PRODUCTS_KEY,
    SALES_KEY,
    LedgerRepository,
)


class UnitOfWork(Protocol):
    def __enter__(self) -> "UnitOfWork": ...
    def __exit__(self, exc_type, exc, tb) -> None: ...
    def stage_products(self, products: Iterable[Product]) -> None: ...
    def stage_sales(self, sales: Iterable[Sale]) -> None: ...
    def stage_offline_sales(self, sales: Iterable[Sale]) -> None: ...


@dataclass
class RepositoryUnitOfWork:
    """Collects whole-collection writes and flushes them as one store write.

    Nothing reaches the store unless the ``with`` block exits cleanly. Keys are
    written in staging order, which matters for stores without multi-key
    transactions.
    """

    repo: LedgerRepository
    _staged: dict[str, str] = field(default_factory=dict)

    def __enter__(self) -> "RepositoryUnitOfWork":
        self._staged = {}
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        staged, self._staged = self._staged, {}
        if exc_type is None and staged:
            self.repo.write_collections(staged)
        return None

    def stage_products(self, products: Iterable[Product]) -> None:
        self._staged[PRODUCTS_KEY] = self.repo.encode_records(products)

    def stage_sales(self, sales: Iterable[Sale]) -> None:
        self._staged[SALES_KEY] = self.repo.encode_records(sales)

    def stage_offline_sales(self, sales: Iterable[Sale]) -> None:
        self._staged[OFFLINE_SALES_KEY] = self.repo.encode_records(sales)
