"""
Pricing calculator tests.

Pure function: a catalog snapshot in, line and sale totals out.
"""

from types import SimpleNamespace

import pytest

from ferreteria.errors import InvalidLine, ProductInactive, ProductNotFound
from ferreteria.services.pricing_service import calculate_totals, compute_tax
from ferreteria.validation import SaleItemInput


def _product(pid, price, active=True):
    return SimpleNamespace(id=pid, sku=f"SKU-{pid}", name=f"Product {pid}", selling_price=price, is_active=active)


CATALOG = {
    1: _product(1, 12990),
    2: _product(2, 4290),
    3: _product(3, 990, active=False),
}


class TestTotals:

    def test_hammer_and_screws_example(self):
        result = calculate_totals(
            [
                SaleItemInput(product_id=1, quantity=2),
                SaleItemInput(product_id=2, quantity=3, discount=500),
            ],
            CATALOG,
        )

        assert result.totals.subtotal == 38850
        assert result.totals.discount == 500
        assert result.totals.tax == 0
        assert result.totals.total == 38350

        first, second = result.lines
        assert (first.position, first.unit_price, first.line_total) == (1, 12990, 25980)
        assert (second.position, second.line_subtotal, second.line_total) == (2, 12870, 12370)

    def test_deterministic(self):
        items = [SaleItemInput(product_id=2, quantity=7, discount=10)]
        assert calculate_totals(items, CATALOG) == calculate_totals(items, CATALOG)

    def test_tax_applied_after_discount(self):
        result = calculate_totals(
            [SaleItemInput(product_id=1, quantity=1, discount=990)],
            CATALOG,
            tax_rate_bps=1900,
        )
        # (12990 - 990) * 19% = 2280
        assert result.totals.tax == 2280
        assert result.totals.total == 12000 + 2280

    @pytest.mark.parametrize(
        "taxable,bps,expected",
        [
            (0, 1900, 0),
            (100, 0, 0),
            (1000, 1900, 190),
            (5, 1000, 1),    # 0.5 rounds up
            (4, 1000, 0),    # 0.4 rounds down
            (38350, 1900, 7287),  # 7286.5
        ],
    )
    def test_compute_tax_half_up(self, taxable, bps, expected):
        assert compute_tax(taxable, bps) == expected


class TestPriceOverride:

    def test_catalog_price_used_when_client_omits_it(self):
        result = calculate_totals([SaleItemInput(product_id=1, quantity=1)], CATALOG)
        assert result.lines[0].unit_price == 12990

    def test_client_price_equal_to_catalog_is_accepted(self):
        result = calculate_totals([SaleItemInput(product_id=1, quantity=1, unit_price=12990)], CATALOG)
        assert result.totals.total == 12990

    def test_client_price_rejected_without_override(self):
        with pytest.raises(InvalidLine) as exc:
            calculate_totals([SaleItemInput(product_id=1, quantity=1, unit_price=1)], CATALOG)
        assert exc.value.details["catalog_price"] == 12990

    def test_client_price_accepted_with_override(self):
        result = calculate_totals(
            [SaleItemInput(product_id=1, quantity=2, unit_price=10000)],
            CATALOG,
            allow_price_override=True,
        )
        assert result.totals.subtotal == 20000


class TestInvalidLines:

    def test_empty_sale(self):
        with pytest.raises(InvalidLine):
            calculate_totals([], CATALOG)

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_non_positive_quantity(self, quantity):
        with pytest.raises(InvalidLine):
            calculate_totals([SaleItemInput(product_id=1, quantity=quantity)], CATALOG)

    def test_negative_discount(self):
        with pytest.raises(InvalidLine):
            calculate_totals([SaleItemInput(product_id=1, quantity=1, discount=-1)], CATALOG)

    def test_discount_above_line_subtotal(self):
        with pytest.raises(InvalidLine):
            calculate_totals([SaleItemInput(product_id=2, quantity=1, discount=4291)], CATALOG)

    def test_negative_price_with_override(self):
        with pytest.raises(InvalidLine):
            calculate_totals(
                [SaleItemInput(product_id=1, quantity=1, unit_price=-5)],
                CATALOG,
                allow_price_override=True,
            )

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            calculate_totals([SaleItemInput(product_id=99, quantity=1)], CATALOG)

    def test_inactive_product(self):
        with pytest.raises(ProductInactive):
            calculate_totals([SaleItemInput(product_id=3, quantity=1)], CATALOG)

    def test_not_found_is_an_invalid_line(self):
        with pytest.raises(InvalidLine):
            calculate_totals([SaleItemInput(product_id=99, quantity=1)], CATALOG)
