"""Database ORM models.

Defines the persistent entities the query pipeline retrieves from:
- Client: a customer location with address fields, optional coordinates, and a
  pgvector embedding of its descriptive text. Coordinates are written back by the
  address resolver.
- Invoice: an accounting record with a pgvector embedding; never geocoded.
"""
from datetime import datetime
from sqlalchemy import Column, Date, DateTime, Float, Index, Numeric, String, Text
from pgvector.sqlalchemy import Vector

from routerag.db import Base
from routerag.config import settings


class Client(Base):
    """Client record used for route planning.

    Indexes:
        - idx_clients_city: speeds up lookups by city/country

    Notes:
        The embedding dimension is settings.EMBEDDING_DIM and must match the
        dimension the EmbeddingEncoder produces.
    """
    __tablename__ = "clients"

    id = Column(String(64), primary_key=True)
    company_name = Column(String(256), nullable=False)
    contact_name = Column(String(256), nullable=True)
    address = Column(String(512), nullable=True)
    postal_code = Column(String(32), nullable=True)
    city = Column(String(128), nullable=True)
    country = Column(String(128), nullable=True)
    phone = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_clients_city", "city", "country"),
    )


class Invoice(Base):
    """Invoice record used for accounting summaries."""
    __tablename__ = "invoices"

    id = Column(String(64), primary_key=True)
    invoice_number = Column(String(64), nullable=False)
    customer_name = Column(String(256), nullable=False)
    issue_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=True)
    amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(8), nullable=False, default="EUR")
    status = Column(String(32), nullable=False, default="open")  # open | paid | overdue
    description = Column(Text, nullable=True)

    embedding = Column(Vector(dim=settings.EMBEDDING_DIM), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_invoices_customer", "customer_name"),
        Index("idx_invoices_status", "status"),
    )
