"""
Database connection for the durable link store.

SQLite by default; any SQLAlchemy URL works via DATABASE_URL.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from linkcache_app.config import settings


def make_engine(database_url: str):
    """Create an engine, allowing SQLite connections to cross threads"""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
