"""Invoicing Error record

Per-customer, per-product failure of an invoicing run kept for operator review.
"""

from datetime import date, datetime
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, String, Text
from src.domain.base import BaseModel, generate_uuid


class InvoicingError(BaseModel, table=True):
    """
    Invoicing Error - a product worker or validation failure

    Domain Rules:
    - Never blocks other products of the same customer
    - Immutable once written
    """

    __tablename__ = "invoicing_errors"
    __table_args__ = (
        Index('ix_invoicing_errors_customer_month', 'customer_id', 'invoice_month'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    customer_id: str

    invoice_month: date = Field(
        sa_column=Column(Date, nullable=False),
    )

    product_type: Optional[str] = Field(
        default=None,
        description="Failed product type (None for customer-level errors)"
    )

    code: str = Field(
        description="Machine readable error code"
    )

    error: str = Field(
        sa_column=Column(Text, nullable=False),
        description="Error message"
    )

    timestamp: datetime = Field(default_factory=datetime.utcnow)
