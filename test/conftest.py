import sys
from datetime import datetime, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class FixedClock:
    def __init__(self, start: datetime = datetime(2024, 3, 15, 10, 30, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def build_ledger(store=None, clock=None):
    from posledger.application.container import build_container
    from posledger.repositories.kv_store import InMemoryStore

    return build_container(store if store is not None else InMemoryStore(), clock=clock or FixedClock())


def seed_products(container, *rows):
    """rows: (name, category, cost, price, stock)"""
    container.repo.save_products([])
    return [container.inventory.add_product(*row) for row in rows]
