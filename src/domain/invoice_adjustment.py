"""Invoice Adjustment Domain Entity

Manually entered amounts added to an entity's invoice for a month.
"""

from datetime import date, datetime
from decimal import Decimal
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String
from src.domain.base import BaseModel, generate_uuid

FLEXSAVE_SAVINGS = "Flexsave Savings"


class InvoiceAdjustment(BaseModel, table=True):
    """
    Invoice Adjustment - manual invoice amount

    Domain Rules:
    - entity_id must reference one of the customer's billing entities
    - Zero amounts produce no row
    - A "Flexsave Savings" adjustment never drives an entity with credits below zero
    """

    __tablename__ = "invoice_adjustments"
    __table_args__ = (
        Index('ix_invoice_adjustments_customer_month', 'customer_id', 'invoice_month'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    customer_id: str
    entity_id: str
    product_type: str

    invoice_month: date = Field(
        sa_column=Column(Date, nullable=False),
        description="First day of the invoiced month"
    )

    description: str
    details: str = ""

    amount: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
    )

    currency: str = Field(
        default="USD",
        sa_column=Column(String(3), nullable=False),
    )

    final: bool = True

    created_at: datetime = Field(default_factory=datetime.utcnow)
