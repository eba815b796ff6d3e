"""Cost Line Item

Daily per-account cost produced by the analytics warehouse. Read-only for
the invoicing engine.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String
from src.domain.base import BaseModel, generate_uuid


class FlexsaveCostType(str, Enum):
    """Flexsave row kinds; the value is the details of the invoice row"""

    COMPUTE_SAVINGS = "Flexsave Compute Savings"
    SAGEMAKER_SAVINGS = "Flexsave SageMaker Savings"
    RDS_SAVINGS = "Flexsave RDS Savings"
    CREDIT_ADJUSTMENTS = "Flexsave Adjustments for Credits"
    MANAGEMENT_COSTS = "Flexsave Management Costs"
    RDS_CHARGES = "Flexsave RDS Charges"
    SP_CREDITS = "AWS Credits for eligible Flexsave charges"


# Netted out of the account spend and shown on their own row
FLEXSAVE_NEGATIONS = {
    "FlexsaveNegation": FlexsaveCostType.COMPUTE_SAVINGS,
    "FlexsaveComputeNegation": FlexsaveCostType.COMPUTE_SAVINGS,
    "FlexsaveSagemakerNegation": FlexsaveCostType.SAGEMAKER_SAVINGS,
    "FlexsaveRDSNegation": FlexsaveCostType.RDS_SAVINGS,
    "FlexsaveAdjustment": FlexsaveCostType.CREDIT_ADJUSTMENTS,
}

# Invoiced as is, outside the credit waterfall
FLEXSAVE_CHARGES = {
    "FlexsaveManagementFee": FlexsaveCostType.MANAGEMENT_COSTS,
    "FlexsaveRDSManagementFee": FlexsaveCostType.MANAGEMENT_COSTS,
    "FlexsaveRIFee": FlexsaveCostType.MANAGEMENT_COSTS,
    "FlexsaveRefund": FlexsaveCostType.MANAGEMENT_COSTS,
    "FlexsaveRDSCharges": FlexsaveCostType.RDS_CHARGES,
    "FlexsaveSpCredit": FlexsaveCostType.SP_CREDITS,
}


class CostLineItem(BaseModel, table=True):
    """
    Cost Line Item - one (account, date, classification) cost

    Domain Rules:
    - Immutable within an invoicing run
    - marketplace_descriptor is only meaningful when is_marketplace is set
    """

    __tablename__ = "cost_line_items"
    __table_args__ = (
        Index('ix_cost_line_items_customer_type_date', 'customer_id', 'product_type', 'usage_date'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    customer_id: str
    product_type: str
    account_id: str

    usage_date: date = Field(
        sa_column=Column(Date, nullable=False),
    )

    cost: Decimal = Field(
        sa_column=Column(Numeric(18, 6), nullable=False),
    )

    cost_classification: str = Field(
        default="Usage",
        description="Cost type (Usage, Tax, FlexsaveComputeNegation, FlexsaveRDSCharges, ...)"
    )

    service_id: Optional[str] = None
    sku_id: Optional[str] = None

    exclude_discount: bool = Field(
        default=False,
        description="Usage priced at list regardless of contract discounts"
    )
    is_preemptible: bool = False

    is_marketplace: bool = False
    marketplace_descriptor: Optional[str] = Field(
        default=None,
        description="Marketplace service description (e.g., 'mangoDB Atlas')"
    )

    @property
    def scope_key(self) -> Optional[str]:
        if not self.service_id or not self.sku_id:
            return None
        return f"services/{self.service_id}/skus/{self.sku_id}"

    @property
    def flexsave_negation_type(self) -> Optional[FlexsaveCostType]:
        return FLEXSAVE_NEGATIONS.get(self.cost_classification)

    @property
    def flexsave_charge_type(self) -> Optional[FlexsaveCostType]:
        return FLEXSAVE_CHARGES.get(self.cost_classification)
