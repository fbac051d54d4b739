import pytest

from conftest import build_ledger, seed_products

from posledger.domain.errors import (
    EmptyCartError,
    InsufficientPaymentError,
    InsufficientStockError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from posledger.repositories.kv_store import InMemoryStore
from posledger.repositories.ledger_repo import PRODUCTS_KEY


def _ledger_with_two_products(store=None):
    ledger = build_ledger(store)
    widget, gadget = seed_products(
        ledger,
        ("Widget", "Parts", 2.00, 5.00, 10),
        ("Gadget", "Parts", 1.00, 1.50, 4),
    )
    return ledger, widget, gadget


def _cart(widget, gadget):
    return [
        {"product_id": widget.id, "quantity": 3},
        {"product_id": gadget.id, "quantity": 2},
    ]


def test_total_profit_and_change_are_computed_from_snapshots():
    ledger, widget, gadget = _ledger_with_two_products()

    sale = ledger.sales.record_sale(_cart(widget, gadget), "Employee", amount_paid=20.00)

    assert sale.total == 18.00
    assert sale.total_profit == 10.00
    assert sale.change == 2.00
    assert sale.amount_paid == 20.00
    assert sale.is_offline is False
    assert [(l.name, l.quantity, l.unit_price, l.unit_cost, l.line_total) for l in sale.items] == [
        ("Widget", 3, 5.00, 2.00, 15.00),
        ("Gadget", 2, 1.50, 1.00, 3.00),
    ]


def test_sale_decrements_stock_and_lands_in_main_log():
    ledger, widget, gadget = _ledger_with_two_products()

    sale = ledger.sales.record_sale(_cart(widget, gadget), "Employee", amount_paid=18)

    assert ledger.inventory.get_product(widget.id).stock == 7
    assert ledger.inventory.get_product(gadget.id).stock == 2
    assert ledger.sales.list_sales() == [sale]
    assert ledger.sales.list_pending_offline_sales() == []


def test_underpayment_fails_and_writes_nothing():
    ledger, widget, gadget = _ledger_with_two_products()

    with pytest.raises(InsufficientPaymentError):
        ledger.sales.record_sale(_cart(widget, gadget), "Employee", amount_paid=17.99)

    assert ledger.inventory.get_product(widget.id).stock == 10
    assert ledger.sales.list_sales() == []


def test_cash_sale_requires_amount_paid_but_card_does_not():
    ledger, widget, gadget = _ledger_with_two_products()

    with pytest.raises(ValidationError):
        ledger.sales.record_sale(_cart(widget, gadget), "Employee")

    sale = ledger.sales.record_sale(_cart(widget, gadget), "Employee", payment_method="card")
    assert sale.payment_method == "card"
    assert sale.amount_paid == sale.total
    assert sale.change == 0.0


def test_empty_cart_is_rejected():
    ledger, _, _ = _ledger_with_two_products()
    with pytest.raises(EmptyCartError):
        ledger.sales.record_sale([], "Employee", amount_paid=10)


def test_oversell_fails_naming_product_and_leaves_stock_unchanged():
    ledger, widget, gadget = _ledger_with_two_products()

    with pytest.raises(InsufficientStockError, match="Gadget") as exc_info:
        ledger.sales.record_sale([{"product_id": gadget.id, "quantity": 5}], "Employee", amount_paid=100)

    assert exc_info.value.product_id == gadget.id
    assert exc_info.value.available == 4
    assert ledger.inventory.get_product(gadget.id).stock == 4


def test_oversell_is_detected_when_same_product_is_repeated():
    ledger, widget, gadget = _ledger_with_two_products()

    with pytest.raises(InsufficientStockError):
        ledger.sales.record_sale(
            [{"product_id": gadget.id, "quantity": 3}, {"product_id": gadget.id, "quantity": 2}],
            "Employee",
            amount_paid=100,
        )


def test_selling_exact_stock_reaches_zero():
    ledger, widget, gadget = _ledger_with_two_products()
    ledger.sales.record_sale([{"product_id": gadget.id, "quantity": 4}], "Employee", amount_paid=6)

    assert ledger.inventory.get_product(gadget.id).stock == 0


@pytest.mark.parametrize("qty", [0, -1, "two", None])
def test_invalid_quantity_is_rejected(qty):
    ledger, widget, _ = _ledger_with_two_products()
    with pytest.raises(ValidationError):
        ledger.sales.record_sale([{"product_id": widget.id, "quantity": qty}], "Employee", amount_paid=100)


def test_unknown_product_and_blank_employee():
    ledger, widget, _ = _ledger_with_two_products()

    with pytest.raises(NotFoundError):
        ledger.sales.record_sale([{"product_id": 42, "quantity": 1}], "Employee", amount_paid=100)
    with pytest.raises(ValidationError):
        ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "  ", amount_paid=100)
    with pytest.raises(ValidationError):
        ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "E", amount_paid=100, connectivity="flaky")


def test_cost_snapshot_is_immune_to_later_price_edits():
    ledger, widget, _ = _ledger_with_two_products()
    sale = ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "Employee", amount_paid=5)

    ledger.inventory.update_product(widget.id, {"cost_price": 4.5, "selling_price": 9.0})

    stored = ledger.sales.get_sale(sale.id)
    assert stored.items[0].unit_cost == 2.00
    assert stored.items[0].unit_price == 5.00
    assert stored.total_profit == 3.00


def test_sale_ids_are_unique_across_log_and_queue():
    ledger, widget, _ = _ledger_with_two_products()
    a = ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "E", amount_paid=5)
    b = ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "E", amount_paid=5, connectivity="offline")
    c = ledger.sales.record_sale([{"product_id": widget.id, "quantity": 1}], "E", amount_paid=5)

    assert len({a.id, b.id, c.id}) == 3


class FailingWriteStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.fail = False

    def set_many(self, values):
        if self.fail:
            raise PersistenceError("quota exceeded")
        super().set_many(values)


def test_persistence_failure_leaves_prior_state_unchanged():
    store = FailingWriteStore()
    ledger, widget, gadget = _ledger_with_two_products(store)
    store.fail = True

    with pytest.raises(PersistenceError):
        ledger.sales.record_sale(_cart(widget, gadget), "Employee", amount_paid=20)

    store.fail = False
    assert ledger.inventory.get_product(widget.id).stock == 10
    assert ledger.sales.list_sales() == []


def test_delete_sale_does_not_restore_stock():
    ledger, widget, _ = _ledger_with_two_products()
    sale = ledger.sales.record_sale([{"product_id": widget.id, "quantity": 2}], "E", amount_paid=10)

    assert ledger.sales.delete_sale(sale.id) is True
    assert ledger.sales.delete_sale(sale.id) is False
    assert ledger.sales.list_sales() == []
    assert ledger.inventory.get_product(widget.id).stock == 8


class UnreadableProductsStore(InMemoryStore):
    def __init__(self):
        super().__init__()
        self.fail_reads = False

    def get(self, key):
        if self.fail_reads and key == PRODUCTS_KEY:
            raise PersistenceError("products unreadable")
        return super().get(key)


def test_products_read_failure_aborts_sale_and_keeps_catalog():
    store = UnreadableProductsStore()
    ledger, widget, gadget = _ledger_with_two_products(store)
    stored_before = store.get(PRODUCTS_KEY)
    store.fail_reads = True

    with pytest.raises(PersistenceError):
        ledger.sales.record_sale(_cart(widget, gadget), "Employee", amount_paid=20)

    store.fail_reads = False
    assert store.get(PRODUCTS_KEY) == stored_before
    assert [p.name for p in ledger.inventory.list_products()] == ["Widget", "Gadget"]
    assert ledger.sales.list_sales() == []


def test_failed_sale_on_fresh_store_persists_nothing():
    store = InMemoryStore()
    ledger = build_ledger(store)

    with pytest.raises(InsufficientStockError):
        ledger.sales.record_sale([{"product_id": 1, "quantity": 1000}], "Employee", amount_paid=5000)

    assert store.keys() == []


def test_first_sale_on_fresh_store_persists_seed_catalog_with_it():
    store = InMemoryStore()
    ledger = build_ledger(store)

    ledger.sales.record_sale([{"product_id": 1, "quantity": 2}], "Employee", amount_paid=5)

    assert ledger.inventory.get_product(1).stock == 98
    assert len(ledger.inventory.list_products()) == 4


@pytest.mark.parametrize("sale_id", ["abc", None, "12x"])
def test_non_numeric_sale_id_is_a_validation_error(sale_id):
    ledger, _, _ = _ledger_with_two_products()

    with pytest.raises(ValidationError):
        ledger.sales.get_sale(sale_id)
    with pytest.raises(ValidationError):
        ledger.sales.delete_sale(sale_id)
