"""ORM Models for the quote store — SQLAlchemy 2.0"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db import Base


# ── QUOTE RECORDS ─────────────────────────────────────────────────────────────
class QuoteRecord(Base):
    """
    One stored quotation, keyed by quotation number.

    ``payload`` is the full encoded record (flattened view + raw backup); the other
    columns are derived copies for listing and search.
    """
    __tablename__ = "quote_records"
    quotation_number: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(20), default="draft", index=True)
    client_name: Mapped[Optional[str]] = mapped_column(String(255))
    window_count: Mapped[int] = mapped_column(Integer, default=1)
    grand_total: Mapped[Optional[float]] = mapped_column(Numeric(14, 2, asdecimal=False))
    version: Mapped[Optional[int]] = mapped_column(Integer)
    payload: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
