"""
Tests for stock reconciliation.
"""

from decimal import Decimal

import pytest
from app.models.cart import Cart, CartLine
from app.models.product import Product
from app.schemas.cart import (
    AdjustmentKind,
    REASON_INSUFFICIENT_STOCK,
    REASON_NO_LONGER_AVAILABLE,
    REASON_OUT_OF_STOCK,
)
from app.services.reconciliation_service import ReconciliationService


def line(product_id, quantity, price="10.00", name=""):
    return CartLine(product_id=product_id, quantity=quantity, unit_price=Decimal(price), name=name)


def product(product_id, stock, price="10.00"):
    return Product(id=product_id, name=f"Product {product_id}", price=price, stock=stock)


class TestReconcile:
    """Test reconcile outcomes."""

    def test_clamps_line_above_stock(self):
        """Quantity 3 against stock 1 is clamped to 1."""
        cart = Cart(lines=[line("5", 3)])

        result = ReconciliationService.reconcile(cart, [product(5, 1)])

        assert result.cart.lines[0].quantity == 1
        assert len(result.adjustments) == 1
        adjustment = result.adjustments[0]
        assert adjustment.kind == AdjustmentKind.CLAMPED
        assert adjustment.reason == REASON_INSUFFICIENT_STOCK
        assert adjustment.from_quantity == 3
        assert adjustment.to_quantity == 1

    def test_removes_missing_product(self):
        """Test that a product gone from the catalog is dropped."""
        cart = Cart(lines=[line("1", 1), line("2", 2)])

        result = ReconciliationService.reconcile(cart, [product(2, 10)])

        assert [l.product_id for l in result.cart.lines] == ["2"]
        assert result.adjustments[0].kind == AdjustmentKind.REMOVED
        assert result.adjustments[0].reason == REASON_NO_LONGER_AVAILABLE

    def test_removes_out_of_stock(self):
        cart = Cart(lines=[line("1", 2)])

        result = ReconciliationService.reconcile(cart, [product(1, 0)])

        assert result.cart.is_empty
        assert result.adjustments[0].kind == AdjustmentKind.REMOVED
        assert result.adjustments[0].reason == REASON_OUT_OF_STOCK

    def test_unaffected_lines_pass_through(self):
        """Test that lines within stock, or with unbounded stock, are unchanged."""
        cart = Cart(lines=[line("1", 2), line("2", 99)])

        result = ReconciliationService.reconcile(cart, [product(1, 2), product(2, None)])

        assert result.cart == cart
        assert result.changed is False
        assert result.adjustments == []

    def test_keeps_line_order(self):
        cart = Cart(lines=[line("3", 1), line("1", 5), line("2", 1)])

        result = ReconciliationService.reconcile(cart, [product(1, 2), product(2, 1), product(3, 1)])

        assert [l.product_id for l in result.cart.lines] == ["3", "1", "2"]

    def test_notice_names_item(self):
        cart = Cart(lines=[line("5", 3, name="Tulip Bouquet")])

        result = ReconciliationService.reconcile(cart, [product(5, 1)])

        assert result.messages() == [
            "Tulip Bouquet: quantity reduced from 3 to 1 (insufficient stock)"
        ]


class TestReconcilePurity:
    """Reconciliation never mutates its inputs."""

    def test_same_output_and_inputs_untouched(self):
        cart = Cart(lines=[line("1", 4), line("2", 1), line("3", 2)])
        catalog = [product(1, 2), product(3, 0)]
        cart_before = cart.model_copy(deep=True)
        catalog_before = list(catalog)

        first = ReconciliationService.reconcile(cart, catalog)
        second = ReconciliationService.reconcile(cart, catalog)

        assert first == second
        assert cart == cart_before
        assert catalog == catalog_before
        assert cart.lines[0].quantity == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
