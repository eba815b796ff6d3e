from .asset_settings_repository import AssetSettingsRepository
from .billing_entity_repository import BillingEntityRepository
from .contract_charge_repository import ContractChargeRepository
from .contract_discount_repository import ContractDiscountRepository
from .cost_line_item_repository import CostLineItemRepository
from .credit_repository import CreditRepository
from .invoice_adjustment_repository import InvoiceAdjustmentRepository
from .invoice_repository import InvoiceRepository
from .invoicing_error_repository import InvoicingErrorRepository

__all__ = [
    "AssetSettingsRepository",
    "BillingEntityRepository",
    "ContractChargeRepository",
    "ContractDiscountRepository",
    "CostLineItemRepository",
    "CreditRepository",
    "InvoiceAdjustmentRepository",
    "InvoiceRepository",
    "InvoicingErrorRepository",
]
