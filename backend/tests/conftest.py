"""
Pytest fixtures for the ferreteria POS backend tests.

Provides test database setup, users, a small catalog, a customer and a
test client with auth helpers.
"""

import pytest
from ferreteria import create_app
from ferreteria.extensions import db
from ferreteria.models import Customer, User
from ferreteria.services.auth_service import hash_password
from ferreteria.services import products_service
from ferreteria.validation import CreateProductRequest


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'CONFLICT_RETRY_BACKOFF': 0,
        'TAX_RATE_BPS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def _make_user(db_session, username: str, role: str) -> User:
    user = User(
        username=username,
        email=f"{username}@ferreteria.test",
        password_hash=hash_password(PASSWORD),
        role=role,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session):
    return _make_user(db_session, "admin", "admin")


@pytest.fixture(scope='function')
def employee_user(db_session):
    return _make_user(db_session, "caja", "employee")


@pytest.fixture(scope='function')
def customer_user(db_session):
    return _make_user(db_session, "cliente", "customer")


def make_product(user_id: int, sku: str, name: str, price: int, stock: int, **extra):
    return products_service.create_product(
        CreateProductRequest(
            sku=sku,
            name=name,
            cost_price=extra.pop("cost_price", price // 2),
            selling_price=price,
            initial_stock=stock,
            **extra,
        ),
        user_id,
    )


@pytest.fixture(scope='function')
def hammer(db_session, admin_user):
    """MART-001: claw hammer, $12.990, 20 in stock."""
    return make_product(admin_user.id, "MART-001", "Martillo carpintero", 12990, 20)


@pytest.fixture(scope='function')
def screws(db_session, admin_user):
    """TORN-001: box of screws, $4.290, 100 in stock."""
    return make_product(admin_user.id, "TORN-001", "Tornillos 6x1 caja", 4290, 100)


@pytest.fixture(scope='function')
def wrench(db_session, admin_user):
    """LL-001: adjustable wrench, only 2 left."""
    return make_product(admin_user.id, "LL-001", "Llave ajustable 10\"", 8990, 2)


@pytest.fixture(scope='function')
def customer(db_session):
    customer = Customer(
        first_name="Juan",
        last_name="Pérez",
        email="juan.perez@example.cl",
        rut="12345678-5",
        credit_limit=500000,
    )
    db_session.add(customer)
    db_session.commit()
    return customer


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def employee_headers(client, employee_user):
    return auth_headers(get_auth_token(client, employee_user.username))


@pytest.fixture(scope='function')
def customer_headers(client, customer_user):
    return auth_headers(get_auth_token(client, customer_user.username))
