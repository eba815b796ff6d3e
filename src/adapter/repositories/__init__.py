from .asset_settings_repository import SqlAlchemyAssetSettingsRepository
from .billing_entity_repository import SqlAlchemyBillingEntityRepository
from .contract_charge_repository import SqlAlchemyContractChargeRepository
from .contract_discount_repository import SqlAlchemyContractDiscountRepository
from .cost_line_item_repository import SqlAlchemyCostLineItemRepository
from .credit_repository import SqlAlchemyCreditRepository
from .invoice_adjustment_repository import SqlAlchemyInvoiceAdjustmentRepository
from .invoice_repository import SqlAlchemyInvoiceRepository
from .invoicing_error_repository import SqlAlchemyInvoicingErrorRepository

__all__ = [
    "SqlAlchemyAssetSettingsRepository",
    "SqlAlchemyBillingEntityRepository",
    "SqlAlchemyContractChargeRepository",
    "SqlAlchemyContractDiscountRepository",
    "SqlAlchemyCostLineItemRepository",
    "SqlAlchemyCreditRepository",
    "SqlAlchemyInvoiceAdjustmentRepository",
    "SqlAlchemyInvoiceRepository",
    "SqlAlchemyInvoicingErrorRepository",
]
