from sqlalchemy.orm import declarative_base, sessionmaker
from gws_backup.config import settings
from gws_backup.dialects import get_adapter

adapter = get_adapter(settings)
engine = adapter.create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create any missing tables."""
    from gws_backup import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
