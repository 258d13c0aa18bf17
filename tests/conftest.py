"""
Shared fixtures: a file-backed SQLite database per test (so worker threads
can open their own connections), seeded reference rows, and an API client
bound to the same database.
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from stockledger.database import Base, get_db, make_engine, register_models
from stockledger.models.product import Product, Variant
from stockledger.models.users import User
from stockledger.models.warehouse import Warehouse
from stockledger.services import operations
from stockledger.utils.tokenJWT import create_access_token


@pytest.fixture
def engine(tmp_path):
    register_models()
    engine = make_engine(f"sqlite:///{tmp_path / 'stockledger-test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def admin(db):
    user = User(email="admin@example.com", role="ADMIN", first_name="Ada")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def product(db):
    product = Product(name="Paracetamol 500mg", code="PARA500", category="Pharma")
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


@pytest.fixture
def make_variant(db, product):
    def _make(sku, *, price="15.00", cost_price="10.00", min_stock_level=10, reorder_quantity=50):
        variant = Variant(
            product_id=product.id,
            sku=sku,
            name=f"Variant {sku}",
            price=Decimal(price),
            cost_price=Decimal(cost_price),
            min_stock_level=min_stock_level,
            reorder_quantity=reorder_quantity,
        )
        db.add(variant)
        db.commit()
        db.refresh(variant)
        return variant

    return _make


@pytest.fixture
def variant(make_variant):
    return make_variant("V1")


@pytest.fixture
def warehouses(db):
    w1 = Warehouse(name="W1", is_active=True)
    w2 = Warehouse(name="W2", is_active=True)
    db.add_all([w1, w2])
    db.commit()
    db.refresh(w1)
    db.refresh(w2)
    return w1, w2


@pytest.fixture
def inward(db, admin):
    # Receive a lot with sensible defaults; keyword overrides pass through
    def _inward(variant_id, warehouse_id, quantity, *, batch_number="B1", cost_price="10.00", expiry_days=180, **kwargs):
        return operations.inward_stock(
            db,
            admin,
            variant_id=variant_id,
            warehouse_id=warehouse_id,
            batch_number=batch_number,
            expiry_date=date.today() + timedelta(days=expiry_days),
            cost_price=Decimal(cost_price),
            quantity=quantity,
            **kwargs,
        )

    return _inward


@pytest.fixture
def client(session_factory):
    from stockledger.main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(admin):
    token = create_access_token({"sub": admin.email})
    return {"Authorization": f"Bearer {token}"}
