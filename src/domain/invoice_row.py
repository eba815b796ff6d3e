"""Invoice Row Domain Entity

Individual row of an invoice: a spend line item, a credit redemption, a
manual adjustment or a bucket header.
"""

from decimal import Decimal
from enum import IntEnum
from typing import List, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import JSON, Numeric, String
from src.domain.base import BaseModel, generate_uuid


class RowRank(IntEnum):
    """
    Ordering class of an invoice row

    Rows sort by rank ascending, then by total descending (see row_sort_key).
    """
    BUCKET_HEADER = 0
    LINE_ITEM = 1
    CREDIT = 2
    ADJUSTMENT = 3


class InvoiceRow(BaseModel, table=True):
    """
    Invoice Row - one line of an invoice

    Domain Rules:
    - total = quantity * ppu
    - Credit rows have quantity -1 and a negative total
    - Immutable once emitted by the assembler
    """

    __tablename__ = "invoice_rows"
    __table_args__ = (
        Index('ix_invoice_rows_invoice_id', 'invoice_id'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
        description="Row identifier"
    )

    invoice_id: Optional[str] = Field(
        default=None,
        description="Invoice document the row is stored in"
    )

    position: int = Field(
        default=0,
        description="Position within its invoice document"
    )

    description: str = Field(
        sa_column=Column(String(255), nullable=False),
        description="Row description (e.g., 'Amazon Web Services')"
    )

    details: str = Field(
        default="",
        description="Row details (e.g., 'Account #123456789012')"
    )

    quantity: int = Field(
        default=1,
        description="1 for charges, -1 for credits and negative charges"
    )

    ppu: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Price per unit"
    )

    currency: str = Field(
        default="USD",
        sa_column=Column(String(3), nullable=False),
    )

    total: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="quantity * ppu"
    )

    rank: RowRank = Field(
        default=RowRank.LINE_ITEM,
        description="Ordering class"
    )

    product_type: str = Field(
        description="Product type that produced the row"
    )

    entity_id: Optional[str] = Field(
        default=None,
        description="Billing entity the row is invoiced to"
    )

    bucket_id: Optional[str] = Field(
        default=None,
        description="Invoice bucket of the row"
    )

    category: str = Field(
        default="",
        description="Marketplace sub-bucket (marketplace_aggregate or marketplace_<hash>)"
    )

    tags: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    final: bool = Field(
        default=False,
        description="Row amount will not change on later runs"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "description": "Amazon Web Services",
                "details": "Account #123456789012",
                "quantity": 1,
                "ppu": "152.340000",
                "currency": "USD",
                "total": "152.340000",
                "rank": 1,
                "product_type": "amazon-web-services",
                "entity_id": "entity_1",
                "bucket_id": None,
                "category": "",
                "tags": [],
                "final": True
            }
        }


def row_sort_key(row: InvoiceRow):
    """Rank ascending, then total descending"""
    return (int(row.rank), -row.total)


def quantity_and_value(amount: Decimal) -> tuple[int, Decimal]:
    """Split a signed amount into (quantity, non-negative unit price)"""
    if amount < 0:
        return -1, -amount
    return 1, amount
