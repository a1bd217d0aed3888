import uuid

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from linkcache_app.database.connection import Base


def new_link_id() -> str:
    return uuid.uuid4().hex


class Link(Base):
    """
    Durable link record.

    Visit history lives on the row as a JSON list so that the visit count and
    the history it summarises are written in the same UPDATE.
    """
    __tablename__ = "links"

    id = Column(String(32), primary_key=True, default=new_link_id)
    # Note: unique=True automatically creates an index in SQLAlchemy
    short_code = Column(String(64), unique=True, nullable=False, index=True)
    original_url = Column(String, nullable=False)
    visits = Column(Integer, nullable=False, default=0, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    last_visited = Column(DateTime(timezone=True), nullable=True)
    visits_history = Column(JSON, nullable=False, default=list)
    user_id = Column(String, nullable=True, index=True)
    script_code = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
