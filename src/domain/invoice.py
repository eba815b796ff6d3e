"""Invoice Domain Entity

One physical invoice document for an entity x bucket x category key in a
billing month. Oversized invoices are stored as several chunks sharing a
group_id.
"""

from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String
from src.domain.base import BaseModel, generate_uuid


class InconclusiveReason(str, Enum):
    """Why an invoice could not be marked final"""
    LOW_COST = "lowCost"
    CURRENCY_ERROR = "currencyError"


class Invoice(BaseModel, table=True):
    """
    Invoice - rows of one entity/bucket/category for one month

    Domain Rules:
    - final is true only if every row is final
    - Never edited; the next run writes a newer document (later timestamp)
    - Chunks of one logical invoice share group_id and are ordered by chunk_index
    - Non-final invoices expire (expire_by) unless superseded
    """

    __tablename__ = "invoices"
    __table_args__ = (
        Index('ix_invoices_customer_month', 'customer_id', 'invoice_month'),
        Index('ix_invoices_group_id', 'group_id'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
        description="Invoice document identifier"
    )

    customer_id: str = Field(
        description="Customer ID"
    )

    entity_id: str = Field(
        description="Billing entity ID"
    )

    invoice_key: str = Field(
        description="Grouping key (entity, entity-type or entity-bucket[_category])"
    )

    product_type: str = Field(
        description="Product type of all rows"
    )

    invoice_month: date = Field(
        sa_column=Column(Date, nullable=False),
        description="First day of the invoiced month"
    )

    details: str = Field(
        default="",
        description="Human readable period (e.g., 'Covering January 2024')"
    )

    currency: str = Field(
        default="USD",
        sa_column=Column(String(3), nullable=False),
        description="Currency code (ISO 4217)"
    )

    total: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Sum of the row totals stored with this invoice (per chunk when split)"
    )

    final: bool = Field(
        default=False,
        description="All rows final and invoice conclusive"
    )

    inconclusive_reason: Optional[InconclusiveReason] = Field(
        default=None,
        description="Reason a conclusive invoice was downgraded to non-final"
    )

    expire_by: Optional[datetime] = Field(
        default=None,
        description="Expiry of a non-final invoice"
    )

    group_id: Optional[str] = Field(
        default=None,
        description="Shared by all chunks of a split invoice"
    )

    chunk_index: int = Field(
        default=0,
        description="Position of this chunk within its group"
    )

    chunk_count: int = Field(
        default=1,
        description="Number of chunks in the group"
    )

    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="Invoicing run timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "2f1d1c4e-0d51-4c39-9a43-7c0f7b9b4c11",
                "customer_id": "customer_123",
                "entity_id": "entity_1",
                "invoice_key": "entity_1-amazon-web-services",
                "product_type": "amazon-web-services",
                "invoice_month": "2024-01-01",
                "details": "Covering January 2024",
                "currency": "USD",
                "total": "1523.400000",
                "final": True,
                "inconclusive_reason": None,
                "expire_by": None,
                "group_id": None,
                "chunk_index": 0,
                "chunk_count": 1,
                "timestamp": "2024-02-03T06:00:00Z"
            }
        }
