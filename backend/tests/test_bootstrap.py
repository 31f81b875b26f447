from bootstrap import DEFAULT_CATEGORIES, DEFAULT_SUPPLIERS, seed_defaults
from config import settings
from models.category import Category
from models.customer import Customer
from models.supplier import Supplier
from models.users import User, UserRole
from utils.hashing import verify_password


def test_seed_creates_defaults(db):
    created = seed_defaults(db)

    assert created == {
        "users": 1,
        "categories": len(DEFAULT_CATEGORIES),
        "suppliers": len(DEFAULT_SUPPLIERS),
        "customers": 1,
    }
    admin = db.query(User).filter(User.username == settings.ADMIN_USERNAME).one()
    assert admin.role == UserRole.ADMIN
    assert verify_password(settings.ADMIN_PASSWORD, admin.password_hash)
    assert db.query(Customer).filter(Customer.name == "Walk-in Customer").count() == 1


def test_seed_is_idempotent(db):
    seed_defaults(db)
    again = seed_defaults(db)

    assert not any(again.values())
    assert db.query(Category).count() == len(DEFAULT_CATEGORIES)
    assert db.query(Supplier).count() == len(DEFAULT_SUPPLIERS)


def test_seed_keeps_existing_rows(db, category, customer):
    created = seed_defaults(db)
    assert created["categories"] == len(DEFAULT_CATEGORIES) - 1
    assert created["customers"] == 0


def test_root(client):
    resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json()["version"] == "1.0.0"
