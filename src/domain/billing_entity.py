"""Billing Entity and Bucket Domain Entities

A billing entity is the legal/invoicing profile that a customer's cloud
accounts are assigned to. Buckets split one entity's invoice into several
documents.
"""

from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import String
from src.domain.base import BaseModel, generate_uuid


class InvoicingMode(str, Enum):
    """How an entity's rows are grouped into invoices"""
    SINGLE = "SINGLE"    # One invoice per entity
    GROUP = "GROUP"      # One invoice per entity and product type
    CUSTOM = "CUSTOM"    # One invoice per entity bucket


class BillingEntity(BaseModel, table=True):
    """
    Billing Entity - Legal/invoicing profile of a customer

    Domain Rules:
    - Inactive entities cannot receive invoice rows
    - CUSTOM invoicing requires a default bucket
    - max_line_items can only raise the configured default
    """

    __tablename__ = "billing_entities"
    __table_args__ = (
        Index('ix_billing_entities_customer_id', 'customer_id'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
        description="Entity identifier"
    )

    customer_id: str = Field(
        description="Owning customer"
    )

    name: str = Field(
        description="Legal name"
    )

    currency: str = Field(
        default="USD",
        sa_column=Column(String(3), nullable=False),
        description="Invoice currency (ISO 4217)"
    )

    active: bool = Field(
        default=True,
        description="Whether the entity can be invoiced"
    )

    invoicing_mode: InvoicingMode = Field(
        default=InvoicingMode.GROUP,
        description="Invoice grouping mode"
    )

    default_bucket_id: Optional[str] = Field(
        default=None,
        description="Bucket for assets without an explicit bucket (CUSTOM mode)"
    )

    marketplace_separate_invoice: bool = Field(
        default=False,
        description="Invoice marketplace purchases separately from usage"
    )

    marketplace_invoice_per_service: bool = Field(
        default=False,
        description="One marketplace invoice per marketplace service"
    )

    max_line_items: Optional[int] = Field(
        default=None,
        description="Per-entity override of the line item cap before overflow"
    )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "entity_1",
                "customer_id": "customer_123",
                "name": "Acme Ltd",
                "currency": "USD",
                "active": True,
                "invoicing_mode": "CUSTOM",
                "default_bucket_id": "bucket_default",
                "marketplace_separate_invoice": True,
                "marketplace_invoice_per_service": False,
                "max_line_items": None,
            }
        }


class Bucket(BaseModel, table=True):
    """Invoice bucket of a billing entity"""

    __tablename__ = "buckets"

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    entity_id: str = Field(index=True)

    name: str
