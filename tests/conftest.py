import os

# Must be set before marketplace.config is imported
os.environ.setdefault("ALLOW_MOCK_TOKENS", "true")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SIGNING_SECRET", "GHW25-058")

import pytest
from fastapi.testclient import TestClient

from marketplace.core.auth import get_principal
from marketplace.core.ratelimit import FixedWindowRateLimiter
from marketplace.core.request_log import RequestLog
from marketplace.database import build_engine, build_session_factory, get_session_factory, init_db
from marketplace.model.cart import CartLine
from marketplace.model.product import Product
from marketplace.schemas.principal import Principal

BUYER = "buyer-1"
SELLER = "seller-1"


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite per test, so worker threads share the same database."""
    eng = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def add_product(session_factory):
    def _add(name="Widget", price_cents=1000, quantity=10, seller_id=SELLER, availability=True):
        with session_factory() as db, db.begin():
            product = Product(
                name=name,
                price_cents=price_cents,
                quantity=quantity,
                seller_id=seller_id,
                availability=availability,
            )
            db.add(product)
            db.flush()
            return product.id
    return _add


@pytest.fixture
def add_to_cart(session_factory):
    def _add(user_id, product_id, quantity=1):
        with session_factory() as db, db.begin():
            db.add(CartLine(user_id=user_id, product_id=product_id, quantity=quantity))
    return _add


@pytest.fixture
def get_product(session_factory):
    def _get(product_id):
        with session_factory() as db:
            return db.get(Product, product_id)
    return _get


@pytest.fixture
def app(session_factory):
    from marketplace.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_session_factory] = lambda: session_factory
    fastapi_app.state.checkout_rate_limiter = FixedWindowRateLimiter(7, 60)
    fastapi_app.state.request_log = RequestLog(50)
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    # No context manager: startup (init_db on the real engine, scheduler) is not run
    return TestClient(app)


@pytest.fixture
def auth_headers():
    def _headers(uid=BUYER, **extra):
        headers = {"Authorization": f"Bearer mock_jwt_token_{uid}"}
        headers.update(extra)
        return headers
    return _headers


@pytest.fixture
def as_admin(app):
    """Every request is made as an admin principal (mock tokens never carry the admin claim)."""
    app.dependency_overrides[get_principal] = lambda: Principal(uid="admin-1", role="admin")
    yield
    app.dependency_overrides.pop(get_principal, None)
