from .base import BaseModel, generate_uuid
from .asset_settings import AssetSettings
from .billing_entity import BillingEntity, Bucket, InvoicingMode
from .contract_charge import ContractCharge, ContractChargeInterval
from .contract_discount import ContractDiscount
from .cost_line_item import CostLineItem
from .credit import Credit
from .invoice import Invoice, InconclusiveReason
from .invoice_adjustment import InvoiceAdjustment
from .invoice_row import InvoiceRow, RowRank
from .invoicing_error import InvoicingError
from .product import ProductType

__all__ = [
    "BaseModel",
    "generate_uuid",
    "AssetSettings",
    "BillingEntity",
    "Bucket",
    "InvoicingMode",
    "ContractCharge",
    "ContractChargeInterval",
    "ContractDiscount",
    "CostLineItem",
    "Credit",
    "Invoice",
    "InconclusiveReason",
    "InvoiceAdjustment",
    "InvoiceRow",
    "RowRank",
    "InvoicingError",
    "ProductType",
]
