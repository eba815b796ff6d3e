"""GenerateProductInvoiceRows Use Case

Runs one product type's invoicing pass for a customer: loads the month's
cost line items, credits, contract charges and adjustments, allocates cost
against credits and assembles invoice rows.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from libs.result import Result, Return, Error
from src.app.repositories.asset_settings_repository import AssetSettingsRepository
from src.app.repositories.contract_charge_repository import ContractChargeRepository
from src.app.repositories.contract_discount_repository import ContractDiscountRepository
from src.app.repositories.cost_line_item_repository import CostLineItemRepository
from src.app.repositories.credit_repository import CreditRepository
from src.app.repositories.invoice_adjustment_repository import InvoiceAdjustmentRepository
from src.domain.billing_entity import BillingEntity
from src.domain.billing_period import month_end
from src.domain.contract_charge import (
    ContractCharge,
    ContractChargeRecalculator,
    build_contract_charge_intervals,
)
from src.domain.contract_discount import NO_CONTRACT_TERMS, ContractDiscountSchedule
from src.domain.cost_line_item import CostLineItem
from src.domain.credit_ledger import CreditLedger
from src.domain.exceptions import ConfigurationError, DataQualityError, InvoicingException
from src.domain.invoice_assembler import AccountContext, InvoiceRowAssembler
from src.domain.marketplace import MarketplaceSpendSplitter
from src.domain.product import ProductType, asset_id_for, get_profile
from src.domain.waterfall import WaterfallAllocator
from .dtos import CustomerInvoicingTaskDTO, ProductInvoiceRows

logger = logging.getLogger(__name__)


def processing_order(item: CostLineItem):
    """Allocation is order sensitive; line items are always consumed in this order"""
    return (
        item.usage_date,
        item.account_id,
        item.cost_classification,
        item.marketplace_descriptor or "",
        item.id,
    )


class GenerateProductInvoiceRows:
    """
    Use Case: Build one product type's invoice rows for a customer month

    Business Rules:
    1. Every account must be assigned to a billing entity (ConfigurationError)
    2. Malformed line items or credits abort the product (DataQualityError)
    3. Line items are allocated in processing_order
    4. PLPS rows are re-rated to the covering contract interval; without one
       the original cost is kept
    5. Other rows get the contract discount and rebase of their usage day,
       unless they are marketplace, excluded or Flexsave rows
    6. Flexsave charges (management costs, RDS charges, SP credits) bypass
       the credit waterfall and are invoiced on their own rows
    7. Credits are a private copy; touched credits are returned as mutations

    Flow:
    1. Load line items and adjustments
    2. Resolve account -> entity/bucket
    3. Load credit ledger, contract charges and contract discounts
    4. Allocate each line item (marketplace items under virtual keys)
    5. Assemble rows
    """

    def __init__(
        self,
        product_type: ProductType,
        cost_repo: CostLineItemRepository,
        credit_repo: CreditRepository,
        adjustment_repo: InvoiceAdjustmentRepository,
        asset_settings_repo: AssetSettingsRepository,
        contract_charge_repo: ContractChargeRepository,
        contract_discount_repo: ContractDiscountRepository,
        plps_sku_id: Optional[str] = None,
        plps_default_percent: Decimal = Decimal("3"),
    ):
        self.product_type = ProductType(product_type)
        self.profile = get_profile(self.product_type)
        self.cost_repo = cost_repo
        self.credit_repo = credit_repo
        self.adjustment_repo = adjustment_repo
        self.asset_settings_repo = asset_settings_repo
        self.contract_charge_repo = contract_charge_repo
        self.contract_discount_repo = contract_discount_repo
        self.plps_sku_id = plps_sku_id
        self.plps_default_percent = Decimal(plps_default_percent)

    async def execute(
        self, task: CustomerInvoicingTaskDTO, entities: Dict[str, BillingEntity]
    ) -> Result[ProductInvoiceRows]:
        """
        Execute row generation

        Args:
            task: Customer invoicing task
            entities: Customer billing entities by id (read only)

        Returns:
            Result[ProductInvoiceRows]: rows and credit mutations, or the error
        """
        try:
            return Return.ok(await self._generate(task, entities))

        except InvoicingException as e:
            logger.error(
                f"{self.product_type.value} invoicing failed for customer "
                f"{task.customer_id}: {e}"
            )
            return Return.err(
                Error(
                    code=e.code,
                    message=f"Failed to generate {self.product_type.value} invoice rows",
                    reason=str(e),
                )
            )
        except Exception as e:
            logger.exception(
                f"Unexpected error generating {self.product_type.value} rows for "
                f"customer {task.customer_id}"
            )
            return Return.err(
                Error(
                    code="GENERATE_INVOICE_ROWS_FAILED",
                    message=f"Failed to generate {self.product_type.value} invoice rows",
                    reason=str(e),
                )
            )

    async def _generate(
        self, task: CustomerInvoicingTaskDTO, entities: Dict[str, BillingEntity]
    ) -> ProductInvoiceRows:
        product = self.product_type.value
        month = task.invoice_month

        items = await self.cost_repo.get_for_month(task.customer_id, product, month)
        for item in items:
            _validate_line_item(item)
        items = sorted(items, key=processing_order)

        adjustments = await self.adjustment_repo.get_for_month(task.customer_id, product, month)

        account_ids = list(dict.fromkeys(item.account_id for item in items))
        contexts = await self._resolve_accounts(account_ids)

        credit_records = await self.credit_repo.get_for_month(task.customer_id, product, month)
        ledger = CreditLedger.load(credit_records, month, account_ids)

        charges: List[ContractCharge] = []
        if self.profile.supports_contract_charges and self.plps_sku_id:
            charges = await self.contract_charge_repo.get_by_customer(task.customer_id, product)
        recalculators: Dict[str, ContractChargeRecalculator] = {}

        discounts = ContractDiscountSchedule([])
        if self.profile.supports_contract_discounts:
            discounts = ContractDiscountSchedule(
                await self.contract_discount_repo.get_by_customer(task.customer_id, product)
            )

        allocator = WaterfallAllocator(ledger)
        splitter = MarketplaceSpendSplitter()

        for item in items:
            context = contexts[item.account_id]
            cost = Decimal(str(item.cost)) if isinstance(item.cost, float) else Decimal(item.cost)

            is_plps = bool(
                self.plps_sku_id
                and item.sku_id == self.plps_sku_id
                and self.profile.supports_contract_charges
            )
            if is_plps:
                recalculator = recalculators.get(context.asset_id)
                if recalculator is None:
                    intervals = build_contract_charge_intervals(
                        charges, context.asset_id, month, month_end(month)
                    )
                    if not intervals:
                        logger.warning(
                            f"No contract charges for asset {context.asset_id} of "
                            f"customer {task.customer_id}"
                        )
                    recalculator = ContractChargeRecalculator(intervals, self.plps_default_percent)
                    recalculators[context.asset_id] = recalculator
                cost = recalculator.recalculate_or_keep(cost, item.usage_date)

            charge_type = item.flexsave_charge_type
            if charge_type is not None:
                allocator.ledger.record_flexsave(item.account_id, charge_type, cost)
                continue

            negation_type = item.flexsave_negation_type
            if negation_type is not None:
                allocator.ledger.record_flexsave(item.account_id, negation_type, cost)

            terms = NO_CONTRACT_TERMS
            if not (is_plps or item.exclude_discount or item.is_marketplace or negation_type):
                terms = discounts.terms_for(item.usage_date, item.is_preemptible)
            cost *= terms.rebase_modifier

            account_key = item.account_id
            if self.profile.supports_marketplace:
                account_key = splitter.allocation_key(
                    item.account_id, item.is_marketplace, item.marketplace_descriptor
                )

            allocator.allocate(
                cost,
                item.usage_date,
                context.entity_id,
                context.asset_id,
                account_key,
                item.scope_key,
                discount=terms.discount,
            )

        allocations = splitter.split(allocator.ledger, account_ids)
        assembler = InvoiceRowAssembler(self.product_type, final=task.final)
        rows = assembler.assemble(allocations, contexts, entities, ledger.names, adjustments)
        mutations = ledger.mutations()

        logger.info(
            f"{product}: customer {task.customer_id} {len(items)} line items, "
            f"{len(rows)} rows, {len(mutations)} credits touched"
        )
        return ProductInvoiceRows(self.product_type, rows=rows, credit_mutations=mutations)

    async def _resolve_accounts(self, account_ids: List[str]) -> Dict[str, AccountContext]:
        asset_ids = {account_id: asset_id_for(self.product_type, account_id) for account_id in account_ids}
        settings = await self.asset_settings_repo.get_by_ids(list(asset_ids.values()))

        contexts = {}
        for account_id, asset_id in asset_ids.items():
            asset_settings = settings.get(asset_id)
            if asset_settings is None or not asset_settings.entity_id:
                raise ConfigurationError(
                    f"account {account_id} ({asset_id}) has no assigned billing entity"
                )
            contexts[account_id] = AccountContext(
                account_id=account_id,
                asset_id=asset_id,
                entity_id=asset_settings.entity_id,
                bucket_id=asset_settings.bucket_id,
                tags=list(asset_settings.tags or []),
            )
        return contexts


def _validate_line_item(item: CostLineItem) -> None:
    if not item.account_id:
        raise DataQualityError(f"cost line item {item.id} has no account")
    if not isinstance(item.usage_date, date):
        raise DataQualityError(
            f"cost line item {item.id} has invalid usage date {item.usage_date!r}"
        )
    if isinstance(item.cost, bool) or not isinstance(item.cost, (Decimal, int, float)):
        raise DataQualityError(f"cost line item {item.id} has non-numeric cost {item.cost!r}")
    if not Decimal(str(item.cost)).is_finite():
        raise DataQualityError(f"cost line item {item.id} has non-finite cost {item.cost!r}")
    if item.is_marketplace not in (True, False):
        raise DataQualityError(
            f"cost line item {item.id} has invalid marketplace flag {item.is_marketplace!r}"
        )
