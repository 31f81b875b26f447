"""
Pytest fixtures for the inventory API tests.

Every test gets its own SQLite file database under tmp_path. A file (not
:memory:) is used so that separate sessions, and separate threads in the
concurrency tests, see the same data through separate connections.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from database import Base, build_engine, get_db, import_models
from main import app
from models.category import Category
from models.customer import Customer
from models.product import Product
from models.supplier import Supplier
from models.users import User, UserRole
from utils.hashing import get_password_hash
from utils.tokenJWT import token_for_user

PASSWORD = "secret123"


@pytest.fixture(scope="session")
def password_hash():
    # bcrypt is deliberately slow; hash the shared test password once
    return get_password_hash(PASSWORD)


@pytest.fixture
def engine(tmp_path):
    import_models()
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
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
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# USERS
# =============================================================================

def _make_user(db, password_hash, username, role, full_name):
    user = User(
        username=username,
        email=f"{username}@shop.com",
        password_hash=password_hash,
        full_name=full_name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin(db, password_hash):
    return _make_user(db, password_hash, "admin", UserRole.ADMIN, "Alex Admin")


@pytest.fixture
def manager(db, password_hash):
    return _make_user(db, password_hash, "manager", UserRole.MANAGER, "Morgan Manager")


@pytest.fixture
def cashier(db, password_hash):
    return _make_user(db, password_hash, "cashier", UserRole.SALES_STAFF, "Casey Cashier")


def _headers(user):
    return {"Authorization": f"Bearer {token_for_user(user)}"}


@pytest.fixture
def admin_headers(admin):
    return _headers(admin)


@pytest.fixture
def manager_headers(manager):
    return _headers(manager)


@pytest.fixture
def cashier_headers(cashier):
    return _headers(cashier)


# =============================================================================
# CATALOG
# =============================================================================

@pytest.fixture
def category(db):
    row = Category(name="Electronics", description="Devices and accessories")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def supplier(db):
    row = Supplier(name="TechCorp Supply", contact_person="John Smith", email="john@techcorp.com")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def customer(db):
    row = Customer(name="Walk-in Customer", email="walkin@store.com")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def make_product(db, category, supplier):
    def _make(name="Wireless Mouse", sku="MOU-001", barcode="4006381333931", price="25.00",
              cost_price="15.00", stock_quantity=5, min_stock_level=2, **extra):
        product = Product(
            name=name,
            sku=sku,
            barcode=barcode,
            price=Decimal(price),
            cost_price=Decimal(cost_price),
            stock_quantity=stock_quantity,
            min_stock_level=min_stock_level,
            category_id=category.id,
            supplier_id=supplier.id,
            **extra,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make


@pytest.fixture
def mouse(make_product):
    return make_product()


@pytest.fixture
def keyboard(make_product):
    return make_product(
        name="Mechanical Keyboard", sku="KEY-001", barcode="5012345678900",
        price="49.99", cost_price="30.00", stock_quantity=10, min_stock_level=3,
    )
