"""
SQLAlchemy Database Models

The SQL backend stores every collection of the document store in a single
table: one row per document, keyed by (collection, id), with the document
body as JSON.
"""

from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.sql import func

from app.database import Base


class Document(Base):
    """
    One JSON document of a named collection (``menuItems``, ``orders``).
    """
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(128), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Document {self.collection}/{self.id}>"
