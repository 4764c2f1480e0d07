# Overview: Pytest coverage for atomic sale creation.

"""
Sale Creation Tests

A sale commits its document, lines, stock decrements, movements and
customer aggregates together, or nothing at all.
"""

import pytest

from ferreteria.errors import (
    CustomerNotFound,
    InsufficientStock,
    InvalidLine,
    ProductInactive,
    ProductNotFound,
    SaleNotFound,
)
from ferreteria.models import Customer, DocumentSequence, InventoryMovement, Product, Sale, SaleLine
from ferreteria.models.inventory import MOVEMENT_SALE
from ferreteria.services import products_service, sales_service
from ferreteria.validation import CreateSaleRequest, SaleItemInput


pytestmark = pytest.mark.sales


def _request(*items, payment_method="cash", customer_id=None, **extra):
    return CreateSaleRequest(
        items=tuple(SaleItemInput(product_id=pid, quantity=qty, **kw) for pid, qty, kw in items),
        payment_method=payment_method,
        customer_id=customer_id,
        **extra,
    )


def _sale_movements(sale_id):
    return (
        InventoryMovement.query.filter_by(reference_document_type="sale", reference_document_id=sale_id)
        .order_by(InventoryMovement.id.asc())
        .all()
    )


def _snapshot(db_session, product_ids, customer_id):
    customer = db_session.get(Customer, customer_id)
    return {
        "sales": Sale.query.count(),
        "lines": SaleLine.query.count(),
        "movements": InventoryMovement.query.count(),
        "stock": {pid: db_session.get(Product, pid).current_stock for pid in product_ids},
        "customer": (customer.total_purchases, customer.current_credit, customer.last_purchase),
        "sequences": sorted((s.document_type, s.next_number) for s in DocumentSequence.query.all()),
    }


class TestCreateSale:

    def test_sale_commits_everything_together(self, db_session, employee_user, hammer, screws):
        sale = sales_service.create_sale(
            _request((hammer.id, 2, {}), (screws.id, 3, {"discount": 500})),
            employee_user.id,
        )

        assert sale.sale_number == "V-000001"
        assert sale.status == "completed"
        assert sale.cashier_id == employee_user.id
        assert sale.totals == {"subtotal": 38850, "discount": 500, "tax": 0, "total": 38350}

        lines = sale.lines
        assert [(l.position, l.product_id, l.quantity, l.subtotal) for l in lines] == [
            (1, hammer.id, 2, 25980),
            (2, screws.id, 3, 12370),
        ]

        assert db_session.get(Product, hammer.id).current_stock == 18
        assert db_session.get(Product, screws.id).current_stock == 97

        movements = _sale_movements(sale.id)
        assert [(m.product_id, m.type, m.quantity_delta) for m in movements] == [
            (hammer.id, MOVEMENT_SALE, -2),
            (screws.id, MOVEMENT_SALE, -3),
        ]
        assert all(m.reference_document_number == "V-000001" for m in movements)
        assert all(m.user_id == employee_user.id for m in movements)

    def test_sale_numbers_are_sequential(self, db_session, employee_user, hammer):
        first = sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)
        second = sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)

        assert (first.sale_number, second.sale_number) == ("V-000001", "V-000002")

    def test_tax_from_config(self, app, db_session, employee_user, hammer):
        app.config["TAX_RATE_BPS"] = 1900
        try:
            sale = sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)
        finally:
            app.config["TAX_RATE_BPS"] = 0

        assert sale.tax == 2468
        assert sale.total == 12990 + 2468


class TestAtomicity:

    def test_insufficient_stock_leaves_no_trace(self, db_session, employee_user, hammer, wrench):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale(
                _request((hammer.id, 1, {}), (wrench.id, 3, {})),
                employee_user.id,
            )

        assert exc.value.details["available"] == 2
        assert exc.value.details["requested"] == 3

        assert db_session.get(Product, wrench.id).current_stock == 2
        assert db_session.get(Product, hammer.id).current_stock == 20
        assert Sale.query.count() == 0
        assert SaleLine.query.count() == 0
        assert InventoryMovement.query.filter_by(type=MOVEMENT_SALE).count() == 0

    def test_failure_after_writes_rolls_everything_back(self, db_session, monkeypatch, employee_user, hammer, screws, customer):
        sales_service.create_sale(_request((hammer.id, 1, {}), customer_id=customer.id), employee_user.id)
        before = _snapshot(db_session, (hammer.id, screws.id), customer.id)

        def failing_record_purchase(target, amount, *, on_credit):
            target.total_purchases += amount
            db_session.flush()
            raise RuntimeError("customer ledger unavailable")

        monkeypatch.setattr(sales_service, "record_purchase", failing_record_purchase)
        with pytest.raises(RuntimeError):
            sales_service.create_sale(
                _request((hammer.id, 2, {}), (screws.id, 3, {}), payment_method="credit", customer_id=customer.id),
                employee_user.id,
            )

        assert _snapshot(db_session, (hammer.id, screws.id), customer.id) == before
        monkeypatch.undo()
        sale = sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)
        assert sale.sale_number == "V-000002"

    def test_failure_on_last_line_rolls_back_earlier_lines(self, db_session, monkeypatch, employee_user, hammer, screws, customer):
        before = _snapshot(db_session, (hammer.id, screws.id), customer.id)
        original = sales_service.reserve_and_apply
        calls = []

        def reserve_then_fail(product_id, *args, **kwargs):
            calls.append(product_id)
            if len(calls) == 2:
                raise RuntimeError("disk full")
            return original(product_id, *args, **kwargs)

        monkeypatch.setattr(sales_service, "reserve_and_apply", reserve_then_fail)
        with pytest.raises(RuntimeError):
            sales_service.create_sale(
                _request((hammer.id, 2, {}), (screws.id, 3, {}), customer_id=customer.id),
                employee_user.id,
            )

        assert calls == [hammer.id, screws.id]
        assert _snapshot(db_session, (hammer.id, screws.id), customer.id) == before

    def test_failed_sale_does_not_consume_a_number(self, db_session, employee_user, hammer, wrench):
        with pytest.raises(InsufficientStock):
            sales_service.create_sale(_request((wrench.id, 3, {})), employee_user.id)

        sale = sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)
        assert sale.sale_number == "V-000001"

    def test_duplicate_lines_checked_against_combined_quantity(self, db_session, employee_user, wrench):
        with pytest.raises(InsufficientStock) as exc:
            sales_service.create_sale(
                _request((wrench.id, 1, {}), (wrench.id, 2, {})),
                employee_user.id,
            )

        assert exc.value.details["requested"] == 3
        assert db_session.get(Product, wrench.id).current_stock == 2

    def test_duplicate_lines_within_stock_are_kept_separate(self, db_session, employee_user, wrench):
        sale = sales_service.create_sale(
            _request((wrench.id, 1, {}), (wrench.id, 1, {})),
            employee_user.id,
        )

        assert len(sale.lines) == 2
        assert db_session.get(Product, wrench.id).current_stock == 0
        assert len(_sale_movements(sale.id)) == 2

    def test_unknown_product(self, db_session, employee_user, hammer):
        with pytest.raises(ProductNotFound):
            sales_service.create_sale(_request((hammer.id, 1, {}), (9999, 1, {})), employee_user.id)
        assert db_session.get(Product, hammer.id).current_stock == 20

    def test_inactive_product(self, db_session, employee_user, hammer):
        products_service.deactivate_product(hammer.id)
        with pytest.raises(ProductInactive):
            sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)

    def test_empty_sale(self, db_session, employee_user):
        with pytest.raises(InvalidLine):
            sales_service.create_sale(_request(), employee_user.id)

    def test_price_override_requires_permission(self, db_session, employee_user, hammer):
        request = _request((hammer.id, 1, {"unit_price": 9990}))

        with pytest.raises(InvalidLine):
            sales_service.create_sale(request, employee_user.id)

        sale = sales_service.create_sale(request, employee_user.id, allow_price_override=True)
        assert sale.total == 9990

    def test_expected_total_mismatch(self, db_session, employee_user, hammer):
        with pytest.raises(InvalidLine):
            sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id, expected_total=1)
        assert Sale.query.count() == 0


class TestCustomerAggregates:

    def test_cash_sale_updates_total_purchases(self, db_session, employee_user, hammer, customer):
        sale = sales_service.create_sale(
            _request((hammer.id, 2, {}), customer_id=customer.id),
            employee_user.id,
        )

        refreshed = db_session.get(Customer, customer.id)
        assert refreshed.total_purchases == sale.total == 25980
        assert refreshed.current_credit == 0
        assert refreshed.last_purchase is not None

    def test_credit_sale_raises_current_credit(self, db_session, employee_user, hammer, customer):
        sales_service.create_sale(
            _request((hammer.id, 1, {}), payment_method="credit", customer_id=customer.id),
            employee_user.id,
        )

        refreshed = db_session.get(Customer, customer.id)
        assert refreshed.current_credit == 12990
        assert refreshed.total_purchases == 12990

    def test_credit_sale_requires_customer(self, db_session, employee_user, hammer):
        with pytest.raises(CustomerNotFound):
            sales_service.create_sale(_request((hammer.id, 1, {}), payment_method="credit"), employee_user.id)

    def test_unknown_customer_aborts_sale(self, db_session, employee_user, hammer):
        with pytest.raises(CustomerNotFound):
            sales_service.create_sale(_request((hammer.id, 1, {}), customer_id=424242), employee_user.id)

        assert db_session.get(Product, hammer.id).current_stock == 20
        assert Sale.query.count() == 0


class TestQueries:

    def test_get_sale_not_found(self, db_session):
        with pytest.raises(SaleNotFound):
            sales_service.get_sale(9999)

    def test_sale_detail_resolves_names_and_movements(self, db_session, employee_user, hammer, customer):
        sale = sales_service.create_sale(
            _request((hammer.id, 1, {}), customer_id=customer.id),
            employee_user.id,
        )

        detail = sales_service.get_sale_detail(sale.id)
        assert detail["customer"]["name"] == "Juan Pérez"
        assert detail["cashier"]["username"] == "caja"
        assert detail["items"][0]["product_sku"] == "MART-001"
        assert detail["items"][0]["product_name"] == "Martillo carpintero"
        assert len(detail["movements"]) == 1

    def test_list_sales_filters(self, db_session, employee_user, hammer, customer):
        sales_service.create_sale(_request((hammer.id, 1, {})), employee_user.id)
        sales_service.create_sale(
            _request((hammer.id, 1, {}), payment_method="card", customer_id=customer.id),
            employee_user.id,
        )

        items, total = sales_service.list_sales()
        assert total == 2
        assert items[0].sale_number == "V-000002"

        items, total = sales_service.list_sales(payment_method="card")
        assert [s.sale_number for s in items] == ["V-000002"]

        items, total = sales_service.list_sales(customer_id=customer.id)
        assert total == 1

        with pytest.raises(InvalidLine):
            sales_service.list_sales(status="lost")
