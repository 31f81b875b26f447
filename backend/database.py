# backend/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import settings


def build_engine(url: str) -> Engine:
    # check_same_thread only applies to SQLite
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        connect_args = {}

    engine = create_engine(url, connect_args=connect_args)

    if url.startswith("sqlite"):
        # SQLite leaves foreign keys unenforced unless asked per connection
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def import_models():
    # Relationships are declared by class name, so every model has to be
    # registered on Base before the first query configures the mappers
    import models.users  # noqa: F401
    import models.category  # noqa: F401
    import models.supplier  # noqa: F401
    import models.product  # noqa: F401
    import models.customer  # noqa: F401
    import models.sale  # noqa: F401
    import models.stock  # noqa: F401
    import models.log  # noqa: F401


def init_db(bind: Engine = None):
    import_models()
    Base.metadata.create_all(bind=bind or engine)
