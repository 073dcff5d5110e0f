import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import text
from config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str):
    """Creates an engine; SQLite connections are shared with worker threads."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(bind):
    # objects handed to the async layer must stay readable after commit
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


engine = make_engine(settings.DATABASE_URL)
SessionLocal = make_session_factory(engine)


def test_db_connection(bind=None):
    """Tests the database connection."""
    try:
        with (bind or engine).connect() as connection:
            connection.execute(text("SELECT 1"))
        logger.info("Database connected successfully.")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def init_db(bind=None):
    """Creates every table registered on the models metadata."""
    from models import Base

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    logger.info(f"Tables detected by SQLAlchemy: {list(Base.metadata.tables.keys())}")


def get_db():
    """Dependency to get the database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
