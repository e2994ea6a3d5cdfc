"""
Sales transaction engine tests.

Covers order totals, stock deduction, the all-or-nothing unit, payments and
live balances.
"""

from datetime import datetime

import pytest

from conftest import sale_item
from stockpos.models import Payment, SalesOrder, SalesOrderItem
from stockpos.services.sales_service import SaleError, SaleItem, compute_order_total
from stockpos.services.stock_service import InsufficientStockError
from stockpos.validation import NotFoundError, ValidationError


def _counts(store):
    session = store.session
    return (
        session.query(SalesOrder).count(),
        session.query(SalesOrderItem).count(),
        session.query(Payment).count(),
    )


def test_compute_order_total():
    items = [
        SaleItem(product_id=1, quantity=2, unit_price_cents=500),
        SaleItem(product_id=2, quantity=1, unit_price_cents=1200, discount_cents=200),
    ]
    assert compute_order_total(items, 300) == 1000 + 1000 - 300


class TestCreateSalesOrder:
    def test_paid_sale_deducts_stock_and_records_payment(self, sales, stock, stocked_product, main_location):
        order = sales.create_sales_order(
            customer_id=None,
            items=[sale_item(stocked_product, 3)],
            location_id=main_location.id,
        )

        assert order.total_amount_cents == 3000
        assert order.status == "confirmed"
        assert stock.quantity_at(stocked_product.id, main_location.id) == 7
        assert sales.total_paid(order.id) == 3000
        assert sales.balance(order.id) == 0

    def test_zero_total_paid_sale_records_a_payment(self, sales, stocked_product, main_location):
        order = sales.create_sales_order(
            None, [sale_item(stocked_product, 1, unit_price_cents=0)], main_location.id,
        )

        payments = sales.get_payments_for_order(order.id).snapshot
        assert order.total_amount_cents == 0
        assert [p.amount_cents for p in payments] == [0]
        assert sales.settlement_status(order.id) == "paid"

    def test_failing_order_subscriber_does_not_fail_the_sale(self, store, sales, stock, stocked_product, main_location):
        def broken_callback(snapshot):
            raise RuntimeError("subscriber broke")

        with sales.orders() as live:
            live.on_change(broken_callback)
            order = sales.create_sales_order(None, [sale_item(stocked_product, 2)], main_location.id)

        assert _counts(store) == (1, 1, 1)
        assert store.get(SalesOrder, order.id) is not None
        assert stock.quantity_at(stocked_product.id, main_location.id) == 8

    def test_item_records_its_source_location(self, store, sales, stock, stocked_product, main_location, back_room):
        stock.adjust_stock(stocked_product.id, back_room.id, 5)

        order = sales.create_sales_order(
            customer_id=None,
            items=[sale_item(stocked_product, 2, location_id=back_room.id)],
            location_id=main_location.id,
        )

        item = store.select(SalesOrderItem, SalesOrderItem.sales_order_id == order.id)[0]
        assert item.location_id == back_room.id
        assert stock.quantity_at(stocked_product.id, back_room.id) == 3
        assert stock.quantity_at(stocked_product.id, main_location.id) == 10

    def test_unit_price_is_a_snapshot(self, store, sales, catalog, stocked_product, main_location):
        order = sales.create_sales_order(None, [sale_item(stocked_product, 1, 950)], main_location.id)
        catalog.update_product(stocked_product.id, {"selling_price_cents": 5000})

        item = store.select(SalesOrderItem, SalesOrderItem.sales_order_id == order.id)[0]
        assert item.unit_price_cents == 950
        assert store.get(SalesOrder, order.id).total_amount_cents == 950

    def test_discounts_reduce_total(self, sales, stocked_product, main_location):
        order = sales.create_sales_order(
            None,
            [sale_item(stocked_product, 2, discount_cents=100)],
            main_location.id,
            discount_amount_cents=400,
        )
        assert order.total_amount_cents == 2000 - 100 - 400
        assert order.discount_amount_cents == 400

    def test_insufficient_stock_writes_nothing(self, store, sales, stock, make_product, stocked_product, main_location):
        scarce = make_product()
        stock.adjust_stock(scarce.id, main_location.id, 1)
        before = _counts(store)

        with pytest.raises(SaleError) as excinfo:
            sales.create_sales_order(
                None,
                [sale_item(stocked_product, 4), sale_item(scarce, 2)],
                main_location.id,
            )

        assert isinstance(excinfo.value.__cause__, InsufficientStockError)
        assert excinfo.value.details["product_id"] == scarce.id
        assert _counts(store) == before
        assert stock.quantity_at(stocked_product.id, main_location.id) == 10
        assert stock.quantity_at(scarce.id, main_location.id) == 1

    def test_failed_sale_can_be_retried(self, sales, stock, stocked_product, main_location):
        with pytest.raises(SaleError):
            sales.create_sales_order(None, [sale_item(stocked_product, 50)], main_location.id)

        order = sales.create_sales_order(None, [sale_item(stocked_product, 5)], main_location.id)
        assert order.id is not None
        assert stock.quantity_at(stocked_product.id, main_location.id) == 5

    def test_inactive_product_is_rejected(self, store, sales, catalog, stocked_product, main_location):
        catalog.update_product(stocked_product.id, {"is_active": False})

        with pytest.raises(SaleError) as excinfo:
            sales.create_sales_order(None, [sale_item(stocked_product, 1)], main_location.id)

        assert isinstance(excinfo.value.__cause__, ValidationError)
        assert _counts(store) == (0, 0, 0)

    def test_unknown_location_or_customer_is_rejected(self, sales, stocked_product, main_location):
        with pytest.raises(SaleError) as excinfo:
            sales.create_sales_order(None, [sale_item(stocked_product, 1)], 9999)
        assert isinstance(excinfo.value.__cause__, NotFoundError)

        with pytest.raises(SaleError):
            sales.create_sales_order(9999, [sale_item(stocked_product, 1)], main_location.id)

    @pytest.mark.parametrize("items", [
        [],
        [{"product_id": 1, "quantity": 1}],
        [{"product_id": 1, "quantity": 0, "unit_price_cents": 100}],
        [{"product_id": 1, "quantity": 1, "unit_price_cents": -1}],
        [{"product_id": 1, "quantity": 1.5, "unit_price_cents": 100}],
    ])
    def test_invalid_items_rejected_before_any_write(self, store, sales, main_location, items):
        with pytest.raises(ValidationError):
            sales.create_sales_order(None, items, main_location.id)
        assert _counts(store) == (0, 0, 0)

    def test_discount_larger_than_subtotal(self, sales, stocked_product, main_location):
        with pytest.raises(ValidationError):
            sales.create_sales_order(
                None, [sale_item(stocked_product, 1)], main_location.id, discount_amount_cents=1001,
            )

    def test_unknown_payment_status_or_method(self, sales, stocked_product, main_location):
        with pytest.raises(ValidationError):
            sales.create_sales_order(None, [sale_item(stocked_product, 1)], main_location.id, payment_status="later")
        with pytest.raises(ValidationError):
            sales.create_sales_order(None, [sale_item(stocked_product, 1)], main_location.id, payment_method="iou")


class TestPayments:
    @pytest.fixture
    def credit_order(self, sales, stocked_product, main_location):
        return sales.create_sales_order(
            None, [sale_item(stocked_product, 3)], main_location.id, payment_status="credit",
        )

    def test_credit_sale_has_no_payment(self, sales, credit_order):
        assert sales.total_paid(credit_order.id) == 0
        assert sales.balance(credit_order.id) == 3000
        assert sales.settlement_status(credit_order.id) == "credit"

    def test_partial_sale_records_amount_paid(self, sales, stocked_product, main_location):
        order = sales.create_sales_order(
            None, [sale_item(stocked_product, 3)], main_location.id,
            payment_status="partial", amount_paid_cents=1000,
        )
        assert sales.balance(order.id) == 2000
        assert sales.settlement_status(order.id) == "partial"

    @pytest.mark.parametrize("amount", [None, 0, 3000, 4000])
    def test_partial_amount_must_be_between_zero_and_total(self, sales, stocked_product, main_location, amount):
        with pytest.raises(ValidationError):
            sales.create_sales_order(
                None, [sale_item(stocked_product, 3)], main_location.id,
                payment_status="partial", amount_paid_cents=amount,
            )

    def test_payments_reduce_balance(self, sales, credit_order):
        sales.add_payment(credit_order.id, 1000)
        sales.add_payment(credit_order.id, 500, method="card")

        assert sales.balance(credit_order.id) == 1500
        assert [p.amount_cents for p in sales.get_payments_for_order(credit_order.id).snapshot] == [1000, 500]

    def test_stored_payment_status_is_not_transitioned(self, store, sales, credit_order):
        sales.add_payment(credit_order.id, 3000)

        assert sales.balance(credit_order.id) == 0
        assert sales.settlement_status(credit_order.id) == "paid"
        assert store.get(SalesOrder, credit_order.id).payment_status == "credit"

    def test_overpayment_gives_negative_balance(self, sales, credit_order):
        sales.add_payment(credit_order.id, 3500)
        assert sales.balance(credit_order.id) == -500

    @pytest.mark.parametrize("amount", [0, -5, "abc", 12.5, None])
    def test_invalid_amount_is_rejected_without_writing(self, store, sales, credit_order, amount):
        with pytest.raises(ValidationError):
            sales.add_payment(credit_order.id, amount)
        assert store.session.query(Payment).count() == 0

    def test_unknown_order(self, sales):
        with pytest.raises(NotFoundError):
            sales.add_payment(9999, 100)

    def test_live_balance_updates_after_payment(self, sales, credit_order):
        with sales.live_balance(credit_order.id) as live:
            assert live.snapshot == 3000
            sales.add_payment(credit_order.id, 1200)
            assert live.snapshot == 1800
            assert list(live.pending()) == [1800]


class TestViews:
    def test_orders_and_items_in_insertion_order(self, sales, make_product, stock, main_location):
        first = make_product()
        second = make_product()
        stock.adjust_stock(first.id, main_location.id, 5)
        stock.adjust_stock(second.id, main_location.id, 5)

        order = sales.create_sales_order(
            None, [sale_item(first, 1), sale_item(second, 2)], main_location.id,
        )
        sales.create_sales_order(None, [sale_item(first, 1)], main_location.id)

        assert [i.product_id for i in sales.get_order_items(order.id).snapshot] == [first.id, second.id]
        assert len(sales.orders().snapshot) == 2

    def test_order_document(self, sales, store, stocked_product, main_location):
        from stockpos.services.customer_service import CustomerService

        customer = CustomerService(store).create_customer({"name": "Tendai"})
        order = sales.create_sales_order(
            customer.id, [sale_item(stocked_product, 2)], main_location.id,
            payment_status="partial", amount_paid_cents=500,
        )

        doc = sales.order_document(order.id)

        assert doc["customer"]["name"] == "Tendai"
        assert doc["items"][0]["product_name"] == stocked_product.name
        assert doc["subtotal_cents"] == 2000
        assert doc["total_paid_cents"] == 500
        assert doc["balance_cents"] == 1500
        assert doc["settlement_status"] == "partial"

    def test_overdue_orders(self, sales, stocked_product, main_location):
        overdue = sales.create_sales_order(
            None, [sale_item(stocked_product, 1)], main_location.id,
            payment_status="credit", due_date="2024-05-01T00:00:00Z",
        )
        settled = sales.create_sales_order(
            None, [sale_item(stocked_product, 1)], main_location.id,
            payment_status="credit", due_date="2024-05-01T00:00:00Z",
        )
        sales.add_payment(settled.id, 1000)
        sales.create_sales_order(
            None, [sale_item(stocked_product, 1)], main_location.id,
            payment_status="credit", due_date="2024-06-01T00:00:00Z",
        )

        result = sales.overdue_orders(now=datetime(2024, 5, 15, 12, 0))

        assert [o.id for o in result] == [overdue.id]
