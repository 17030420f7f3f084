import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import DATABASE_URL
from .models import Base

logger = logging.getLogger(__name__)

engine: Engine = create_engine(DATABASE_URL, pool_pre_ping=True)    # one engine per process
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))


def close_db() -> None:
    engine.dispose()
    logger.info("Database connections closed")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
