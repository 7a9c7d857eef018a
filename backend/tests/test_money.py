"""
Tests for money helpers and product normalization.
"""

from decimal import Decimal

import pytest
from app.models.product import Product
from app.utils.money import compute_totals, format_currency, to_decimal, to_money


class TestComputeTotals:
    """Test order summary arithmetic."""

    def test_shop_defaults(self):
        """100.00 with a 35.00 fee at 8% tax comes to 143.00."""
        totals = compute_totals(Decimal("100.00"), Decimal("35.00"), Decimal("0.08"))

        assert totals["subtotal"] == Decimal("100.00")
        assert totals["tax"] == Decimal("8.00")
        assert totals["total"] == Decimal("143.00")

    def test_tax_rounds_half_up(self):
        totals = compute_totals("0.0625", "0", "0.08")
        assert totals["subtotal"] == Decimal("0.06")

        totals = compute_totals("58.97", "350", "0.08")
        assert totals["tax"] == Decimal("4.72")
        assert totals["total"] == Decimal("413.69")

    def test_float_inputs_do_not_drift(self):
        totals = compute_totals(0.1 + 0.2, 0, 0)
        assert totals["total"] == Decimal("0.30")


class TestConversions:
    """Test amount parsing."""

    def test_blank_is_zero(self):
        assert to_decimal(None) == Decimal("0")
        assert to_decimal("") == Decimal("0")

    @pytest.mark.parametrize("value", ["abc", True])
    def test_invalid_amount(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)

    def test_to_money_quantizes(self):
        assert to_money("2.005") == Decimal("2.01")


class TestFormatCurrency:
    """Test display formatting."""

    def test_peso_with_grouping(self):
        assert format_currency(Decimal("1234.5"), "PHP") == "₱1,234.50"

    def test_other_currencies(self):
        assert format_currency(3, "USD") == "$3.00"
        assert format_currency(3, "JPY") == "JPY 3.00"

    def test_negative_and_invalid(self):
        assert format_currency(-5, "PHP") == "-₱5.00"
        assert format_currency("oops", "PHP") == "₱0.00"


class TestProductFromDocument:
    """Test catalog document normalization."""

    def test_mongo_document(self):
        product = Product.from_document({
            "_id": "65f0c0ffee",
            "title": "Flower Keychain",
            "price": 8.99,
            "stock": 12,
            "isNew": True,
            "images": ["a.jpg", "b.jpg"],
        })

        assert product.id == "65f0c0ffee"
        assert product.name == "Flower Keychain"
        assert product.price == Decimal("8.99")
        assert product.is_new is True
        assert product.image == "a.jpg"
        assert product.gallery == ["b.jpg"]

    def test_missing_stock_is_unbounded(self):
        product = Product.from_document({"id": 3, "name": "Sticker", "price": "1.50"})

        assert product.id == "3"
        assert product.is_unbounded is True
        assert product.is_out_of_stock is False

    def test_negative_stock_is_zero(self):
        product = Product.from_document({"id": 1, "name": "Rose", "price": 1, "stock": -4})

        assert product.stock == 0
        assert product.is_out_of_stock is True

    def test_missing_id_rejected(self):
        with pytest.raises(ValueError):
            Product.from_document({"name": "Nameless", "price": 1})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
