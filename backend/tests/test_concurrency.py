# Overview: Threaded concurrency tests against a file-backed SQLite database.

"""
Concurrency tests for the sale core.

Each worker thread runs in its own app context (own session, own
connection) against the same database file, the way concurrent requests
would. Conflicts are retried by run_with_retry, as the HTTP layer does.
"""
import os
import tempfile
import threading
import unittest

import pytest

from ferreteria import create_app
from ferreteria.errors import InsufficientStock
from ferreteria.extensions import db
from ferreteria.models import InventoryMovement, Product, Sale, User
from ferreteria.services import inventory_service, products_service, sales_service
from ferreteria.services.concurrency import run_with_retry
from ferreteria.validation import CreateProductRequest, CreateSaleRequest, SaleItemInput


@pytest.mark.concurrency
class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "CONFLICT_RETRY_ATTEMPTS": 10,
            "CONFLICT_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

            user = User(
                username="concurrent_user",
                email="concurrent@example.com",
                password_hash="dummy",
                role="employee",
                is_active=True,
            )
            db.session.add(user)
            db.session.commit()
            self.user_id = user.id

            scarce = products_service.create_product(
                CreateProductRequest(
                    sku="CONCUR-1", name="Taladro percutor", cost_price=20000,
                    selling_price=39990, initial_stock=10,
                ),
                self.user_id,
            )
            plenty = products_service.create_product(
                CreateProductRequest(
                    sku="CONCUR-2", name="Brocha 2\"", cost_price=500,
                    selling_price=1290, initial_stock=100,
                ),
                self.user_id,
            )
            self.scarce_id = scarce.id
            self.plenty_id = plenty.id

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _run_workers(self, product_id, quantity, count):
        created = []
        rejected = []
        errors = []
        lock = threading.Lock()

        def worker():
            request = CreateSaleRequest(
                items=(SaleItemInput(product_id=product_id, quantity=quantity),),
                payment_method="cash",
            )
            with self.app.app_context():
                try:
                    sale = run_with_retry(lambda: sales_service.create_sale(request, self.user_id))
                    with lock:
                        created.append(sale.sale_number)
                except InsufficientStock as exc:
                    with lock:
                        rejected.append(exc)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return created, rejected, errors

    def test_concurrent_sales_never_oversell(self):
        created, rejected, errors = self._run_workers(self.scarce_id, 3, 6)

        self.assertFalse(errors)
        # 10 units, 3 per sale: exactly three sales fit
        self.assertEqual(len(created), 3)
        self.assertEqual(len(rejected), 3)

        with self.app.app_context():
            product = db.session.get(Product, self.scarce_id)
            self.assertEqual(product.current_stock, 1)
            self.assertEqual(
                InventoryMovement.query.filter_by(product_id=self.scarce_id, type="sale").count(), 3
            )
            self.assertTrue(inventory_service.reconcile_product(self.scarce_id)["consistent"])

    def test_sale_numbers_unique_under_concurrency(self):
        created, rejected, errors = self._run_workers(self.plenty_id, 1, 10)

        self.assertFalse(errors)
        self.assertFalse(rejected)
        self.assertEqual(len(created), 10)
        self.assertEqual(len(set(created)), 10)
        self.assertEqual(sorted(created), [f"V-{n:06d}" for n in range(1, 11)])

        with self.app.app_context():
            self.assertEqual(Sale.query.count(), 10)
            self.assertEqual(db.session.get(Product, self.plenty_id).current_stock, 90)


if __name__ == "__main__":
    unittest.main()
