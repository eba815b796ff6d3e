"""Credit Domain Entity

Prepaid balance that offsets usage cost for one customer, billing entity
and product type. Administered externally; the invoicing run only writes
back remaining, utilization and depletion_date.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import CheckConstraint, Date, Integer, JSON, Numeric, String
from src.domain.base import BaseModel, generate_uuid


class Credit(BaseModel, table=True):
    """
    Credit - Prepaid balance consumed by the waterfall allocation

    Domain Rules:
    - remaining is always within [0, amount]
    - end_date is exclusive
    - utilization maps "YYYY-MM" -> allocation key -> consumed amount
      (amounts stored as decimal strings)
    - Empty assets/scope means no restriction
    - version increments on every write-back (optimistic concurrency)
    """

    __tablename__ = "credits"
    __table_args__ = (
        CheckConstraint('amount >= 0', name='credit_amount_non_negative'),
        CheckConstraint('remaining >= 0', name='credit_remaining_non_negative'),
        Index('ix_credits_customer_type', 'customer_id', 'product_type'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
        description="Credit identifier"
    )

    customer_id: str = Field(
        description="Owning customer"
    )

    entity_id: Optional[str] = Field(
        default=None,
        description="Billing entity the credit is scoped to"
    )

    product_type: str = Field(
        description="Product type the credit applies to (e.g., amazon-web-services)"
    )

    name: str = Field(
        default="",
        description="Display name used as credit row details"
    )

    amount: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Original credit amount"
    )

    remaining: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
        description="Remaining balance after the last write-back"
    )

    start_date: date = Field(
        sa_column=Column(Date, nullable=False),
        description="First day the credit applies"
    )

    end_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
        description="Exclusive upper bound of the credit window"
    )

    assets: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Asset ids the credit is restricted to (empty = all)"
    )

    scope: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Resource scope keys the credit is restricted to (empty = all)"
    )

    utilization: Dict[str, Dict[str, str]] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Monthly consumption per allocation key"
    )

    depletion_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
        description="Date the credit first reached zero"
    )

    version: int = Field(
        default=1,
        sa_column=Column(Integer, nullable=False, default=1),
        description="Optimistic concurrency token"
    )

    updated_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Last write-back timestamp"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "credit_aws_2024",
                "customer_id": "customer_123",
                "entity_id": "entity_1",
                "product_type": "amazon-web-services",
                "name": "AWS Migration Credit",
                "amount": "1000.000000",
                "remaining": "750.000000",
                "start_date": "2024-01-01",
                "end_date": "2025-01-01",
                "assets": [],
                "scope": [],
                "utilization": {"2024-01": {"123456789012": "250.000000"}},
                "depletion_date": None,
                "version": 3,
            }
        }
