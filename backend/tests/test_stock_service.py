"""
Stock engine tests: adjustments, the stock floor, transfers and low stock.
"""

import pytest

from stockpos.models import StockLevel
from stockpos.services.stock_service import (
    InsufficientStockError,
    TransferError,
    find_low_stock_products,
)
from stockpos.validation import NotFoundError, ValidationError


def test_first_adjustment_creates_level(store, stock, make_product, main_location):
    product = make_product()
    assert stock.quantity_at(product.id, main_location.id) == 0

    level = stock.adjust_stock(product.id, main_location.id, 7, reason="Received")

    assert level.quantity == 7
    assert store.session.query(StockLevel).filter_by(product_id=product.id).count() == 1


def test_adjustments_accumulate(stock, make_product, main_location):
    product = make_product()
    stock.adjust_stock(product.id, main_location.id, 5)
    stock.adjust_stock(product.id, main_location.id, 3)
    stock.adjust_stock(product.id, main_location.id, -2)

    assert stock.quantity_at(product.id, main_location.id) == 6


@pytest.mark.parametrize("delta", [1, 4, 10])
def test_inverse_adjustment_restores_level(stock, stocked_product, main_location, delta):
    stock.adjust_stock(stocked_product.id, main_location.id, delta)
    stock.adjust_stock(stocked_product.id, main_location.id, -delta)
    assert stock.quantity_at(stocked_product.id, main_location.id) == 10

    stock.adjust_stock(stocked_product.id, main_location.id, -delta)
    stock.adjust_stock(stocked_product.id, main_location.id, delta)
    assert stock.quantity_at(stocked_product.id, main_location.id) == 10


def test_total_quantity_sums_locations(stock, make_product, main_location, back_room):
    product = make_product()
    stock.adjust_stock(product.id, main_location.id, 4)
    stock.adjust_stock(product.id, back_room.id, 9)

    assert stock.total_quantity(product.id) == 13


def test_adjustment_below_zero_is_rejected(stock, stocked_product, main_location):
    with pytest.raises(InsufficientStockError) as excinfo:
        stock.adjust_stock(stocked_product.id, main_location.id, -11)

    assert excinfo.value.details["on_hand"] == 10
    assert stock.quantity_at(stocked_product.id, main_location.id) == 10


def test_adjustment_to_exactly_zero_is_allowed(stock, stocked_product, main_location):
    stock.adjust_stock(stocked_product.id, main_location.id, -10)
    assert stock.quantity_at(stocked_product.id, main_location.id) == 0


@pytest.mark.parametrize("delta", [0, 1.5, "abc", None])
def test_invalid_delta(stock, stocked_product, main_location, delta):
    with pytest.raises(ValidationError):
        stock.adjust_stock(stocked_product.id, main_location.id, delta)


def test_unknown_product_or_location(stock, stocked_product, main_location):
    with pytest.raises(NotFoundError):
        stock.adjust_stock(9999, main_location.id, 1)
    with pytest.raises(NotFoundError):
        stock.adjust_stock(stocked_product.id, 9999, 1)


def test_transfer_moves_quantity(stock, stocked_product, main_location, back_room):
    source, destination = stock.transfer_stock(stocked_product.id, main_location.id, back_room.id, 4)

    assert source.quantity == 6
    assert destination.quantity == 4
    assert stock.total_quantity(stocked_product.id) == 10


def test_transfer_exceeding_source_applies_neither_leg(stock, stocked_product, main_location, back_room):
    with pytest.raises(TransferError) as excinfo:
        stock.transfer_stock(stocked_product.id, main_location.id, back_room.id, 11)

    assert isinstance(excinfo.value.__cause__, InsufficientStockError)
    assert excinfo.value.details["quantity"] == 11
    assert stock.quantity_at(stocked_product.id, main_location.id) == 10
    assert stock.quantity_at(stocked_product.id, back_room.id) == 0


def test_transfer_to_unknown_location_rolls_back_debit(stock, stocked_product, main_location):
    with pytest.raises(TransferError):
        stock.transfer_stock(stocked_product.id, main_location.id, 9999, 3)

    assert stock.quantity_at(stocked_product.id, main_location.id) == 10


def test_transfer_validation_happens_before_any_write(stock, stocked_product, main_location, back_room):
    with pytest.raises(ValidationError):
        stock.transfer_stock(stocked_product.id, main_location.id, main_location.id, 1)
    with pytest.raises(ValidationError):
        stock.transfer_stock(stocked_product.id, main_location.id, back_room.id, 0)


class TestLowStock:
    def test_strictly_below_minimum(self, store, stock, make_product, main_location):
        product = make_product(min_stock_level=5)
        stock.adjust_stock(product.id, main_location.id, 4)

        assert [p.id for p in find_low_stock_products(store.session)] == [product.id]

    def test_sum_across_locations(self, store, stock, make_product, main_location, back_room):
        product = make_product(min_stock_level=5)
        stock.adjust_stock(product.id, main_location.id, 3)
        stock.adjust_stock(product.id, back_room.id, 2)

        assert find_low_stock_products(store.session) == []

    def test_no_stock_rows_counts_as_zero(self, store, make_product):
        product = make_product(min_stock_level=1)
        assert [p.id for p in find_low_stock_products(store.session)] == [product.id]

    def test_zero_minimum_and_inactive_never_flag(self, store, make_product):
        make_product(min_stock_level=0)
        make_product(min_stock_level=3, is_active=False)

        assert find_low_stock_products(store.session) == []

    def test_live_view_follows_adjustments(self, stock, make_product, main_location):
        product = make_product(min_stock_level=2)

        with stock.low_stock_products() as live:
            assert [p.id for p in live.snapshot] == [product.id]
            stock.adjust_stock(product.id, main_location.id, 2)
            assert live.snapshot == []


def test_stock_for_product_includes_location_names(stock, stocked_product, back_room):
    stock.adjust_stock(stocked_product.id, back_room.id, 1)

    with stock.get_stock_for_product(stocked_product.id) as live:
        names = sorted(row["location_name"] for row in live.snapshot)

    assert names == ["Back Room", "Main Warehouse"]


def test_locations_are_live(stock, main_location):
    with stock.list_locations() as live:
        stock.add_location("  Shop Floor ", "Front of store")
        assert [loc.name for loc in live.snapshot] == ["Main Warehouse", "Shop Floor"]


def test_location_name_required(stock):
    with pytest.raises(ValidationError):
        stock.add_location("   ")
