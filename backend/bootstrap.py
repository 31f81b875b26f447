# backend/bootstrap.py
"""
Default rows every fresh installation needs: the admin account, a starter
catalog of categories and suppliers, and the "Walk-in Customer" that
anonymous till sales are booked against.

Each row is looked up by its natural key first, so running this against a
database that already has them is a no-op. Run it by hand with
``python -m bootstrap`` from the backend directory.
"""
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from config import settings
from models.category import Category
from models.customer import Customer
from models.supplier import Supplier
from models.users import User, UserRole
from utils.hashing import get_password_hash

logger = logging.getLogger(__name__)

DEFAULT_CATEGORIES = [
    ("Electronics", "Electronic devices and accessories"),
    ("Clothing", "Apparel and fashion items"),
    ("Food & Beverages", "Groceries, snacks and drinks"),
    ("Books", "Books and educational materials"),
    ("Home & Garden", "Home improvement and garden supplies"),
]

DEFAULT_SUPPLIERS = [
    {
        "name": "TechCorp Supply",
        "contact_person": "John Smith",
        "email": "john@techcorp.com",
        "phone": "+1-555-0101",
        "address": "123 Tech Street, Silicon Valley, CA",
    },
    {
        "name": "Fashion Wholesale",
        "contact_person": "Jane Doe",
        "email": "jane@fashionwholesale.com",
        "phone": "+1-555-0102",
        "address": "456 Fashion Ave, New York, NY",
    },
    {
        "name": "Book Distributors Inc",
        "contact_person": "Bob Wilson",
        "email": "bob@bookdist.com",
        "phone": "+1-555-0103",
        "address": "789 Literature Lane, Boston, MA",
    },
]

WALK_IN_CUSTOMER = {
    "name": "Walk-in Customer",
    "email": "walkin@store.com",
    "phone": "N/A",
    "address": "Store Location",
}


def seed_defaults(db: Session) -> dict:
    """Insert whatever default rows are missing; returns how many of each were created."""
    created = {"users": 0, "categories": 0, "suppliers": 0, "customers": 0}

    admin = db.query(User).filter(func.lower(User.username) == settings.ADMIN_USERNAME.lower()).first()
    if admin is None:
        db.add(User(
            username=settings.ADMIN_USERNAME,
            email=settings.ADMIN_EMAIL.lower(),
            password_hash=get_password_hash(settings.ADMIN_PASSWORD),
            full_name="System Administrator",
            role=UserRole.ADMIN,
            is_active=True,
        ))
        created["users"] += 1

    for name, description in DEFAULT_CATEGORIES:
        if not db.query(Category.id).filter(Category.name == name).first():
            db.add(Category(name=name, description=description))
            created["categories"] += 1

    for data in DEFAULT_SUPPLIERS:
        if not db.query(Supplier.id).filter(Supplier.name == data["name"]).first():
            db.add(Supplier(**data))
            created["suppliers"] += 1

    if not db.query(Customer.id).filter(Customer.email == WALK_IN_CUSTOMER["email"]).first():
        db.add(Customer(**WALK_IN_CUSTOMER))
        created["customers"] += 1

    db.commit()
    if any(created.values()):
        logger.info("Seeded default data: %s", created)
    return created


if __name__ == "__main__":
    from database import SessionLocal, init_db

    logging.basicConfig(level=settings.LOG_LEVEL)
    init_db()
    session = SessionLocal()
    try:
        print(seed_defaults(session))
    finally:
        session.close()
