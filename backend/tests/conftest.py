"""
Pytest fixtures for La Económica backend tests.

Provides a fresh in-memory database per test, one user per role with a
bearer token, and small catalog/client/coupon factories.
"""

import pytest

from economica import create_app
from economica.extensions import db
from economica.models import Client, Coupon, Product, User
from economica.permissions import Role
from economica.services import auth_service, session_service


PASSWORD = "Password123"


@pytest.fixture(autouse=True)
def fast_bcrypt(monkeypatch):
    """Minimum bcrypt cost keeps user fixtures fast."""
    monkeypatch.setattr(auth_service, "BCRYPT_ROUNDS", 4)


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TAX_RATE_BPS': 0,
        'LOYALTY_CENTS_PER_POINT': 1000,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


def _make_user(role: Role, email: str) -> User:
    return auth_service.create_user(email, PASSWORD, role, first_name=role.name.title())


def _headers(user: User) -> dict:
    _session, token = session_service.create_session(user.id)
    return {"Authorization": f"Bearer {token}"}


# =============================================================================
# USERS
# =============================================================================

@pytest.fixture
def cashier(app):
    return _make_user(Role.CASHIER, "cajero@test.local")


@pytest.fixture
def supervisor(app):
    return _make_user(Role.SUPERVISOR, "supervisor@test.local")


@pytest.fixture
def manager(app):
    return _make_user(Role.MANAGER, "gerente@test.local")


@pytest.fixture
def owner(app):
    return _make_user(Role.OWNER, "dueno@test.local")


@pytest.fixture
def developer(app):
    return _make_user(Role.DEVELOPER, "dev@test.local")


@pytest.fixture
def cashier_headers(cashier):
    return _headers(cashier)


@pytest.fixture
def supervisor_headers(supervisor):
    return _headers(supervisor)


@pytest.fixture
def manager_headers(manager):
    return _headers(manager)


@pytest.fixture
def owner_headers(owner):
    return _headers(owner)


@pytest.fixture
def developer_headers(developer):
    return _headers(developer)


# =============================================================================
# CATALOG, CLIENTS, COUPONS
# =============================================================================

@pytest.fixture
def make_product(app):
    counter = {"n": 0}

    def _make(price_cents=10000, stock_quantity=10, name=None, **kwargs):
        counter["n"] += 1
        product = Product(
            sku=kwargs.pop("sku", f"SKU-{counter['n']:03d}"),
            name=name or f"Producto {counter['n']}",
            price_cents=price_cents,
            stock_quantity=stock_quantity,
            **kwargs,
        )
        db.session.add(product)
        db.session.commit()
        return product

    return _make


@pytest.fixture
def make_client(app):
    def _make(name="María López", total_points=0, **kwargs):
        record = Client(name=name, total_points=total_points, **kwargs)
        db.session.add(record)
        db.session.commit()
        return record

    return _make


@pytest.fixture
def make_coupon(app):
    def _make(code="DESC10", discount_type="percentage", discount_value=10, **kwargs):
        coupon = Coupon(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
        db.session.add(coupon)
        db.session.commit()
        return coupon

    return _make
