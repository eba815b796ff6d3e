"""Marketplace Spend Splitter

Marketplace purchases of an account are allocated under virtual account
keys (one per marketplace service) and recombined into constituents of the
account afterwards, so marketplace spend can be invoiced on its own.
"""

from decimal import Decimal
from typing import Dict, Iterable, Optional
from pydantic import BaseModel, Field
from src.domain.billing_entity import BillingEntity
from src.domain.cost_line_item import FLEXSAVE_NEGATIONS, FlexsaveCostType
from src.domain.credit_ledger import ZERO
from src.domain.waterfall import AllocationLedger

MARKETPLACE_NONE = "marketplace_none"
MARKETPLACE_AGGREGATE = "marketplace_aggregate"
MARKETPLACE_INDIVIDUAL = "marketplace_individual"
MARKETPLACE_NONE_LABEL = "excluding Marketplace costs"
VIRTUAL_KEY_DELIMITER = "__"

_FNV_OFFSET_BASIS = 0x811C9DC5
_FNV_PRIME = 0x01000193


def fnv1a_32(text: str) -> int:
    value = _FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        value ^= byte
        value = (value * _FNV_PRIME) & 0xFFFFFFFF
    return value


def marketplace_reference(descriptor: str) -> str:
    """Display-safe identifier of a marketplace service (marketplace_<fnv1a32>)"""
    return f"marketplace_{fnv1a_32(descriptor)}"


class MarketplaceConstituent(BaseModel):
    key: str
    label: str
    spend: Decimal = ZERO
    credits: Dict[str, Decimal] = Field(default_factory=dict)


class AccountAllocation(BaseModel):
    """
    Recombined allocation of one account

    spend is the account's true total; constituents is empty when the
    account has no marketplace spend.
    """

    account_id: str
    spend: Decimal = ZERO
    credits: Dict[str, Decimal] = Field(default_factory=dict)
    credit_discounts: Dict[str, Decimal] = Field(default_factory=dict)
    constituents: Dict[str, MarketplaceConstituent] = Field(default_factory=dict)
    flexsave: Dict[FlexsaveCostType, Decimal] = Field(default_factory=dict)

    @property
    def flexsave_negation(self) -> Decimal:
        """Flexsave savings netted out of the non-marketplace spend"""
        negation_types = set(FLEXSAVE_NEGATIONS.values())
        return sum(
            (amount for cost_type, amount in self.flexsave.items() if cost_type in negation_types),
            ZERO,
        )


def marketplace_invoicing_mode(allocation: AccountAllocation, entity: BillingEntity) -> str:
    if not allocation.constituents:
        return MARKETPLACE_NONE
    if entity.marketplace_separate_invoice and entity.marketplace_invoice_per_service:
        return MARKETPLACE_INDIVIDUAL
    if entity.marketplace_separate_invoice:
        return MARKETPLACE_AGGREGATE
    return MARKETPLACE_NONE


def _merge(target: Dict[str, Decimal], source: Dict[str, Decimal]) -> None:
    for credit_id, amount in source.items():
        target[credit_id] = target.get(credit_id, ZERO) + amount


class MarketplaceSpendSplitter:
    """
    Routes marketplace cost to virtual keys and recombines the results

    Usage:
        splitter = MarketplaceSpendSplitter()
        key = splitter.allocation_key(item.account_id, item.is_marketplace, item.marketplace_descriptor)
        allocator.allocate(cost, day, entity_id, asset_id, key)
        ...
        allocations = splitter.split(allocator.ledger, account_ids)
    """

    def __init__(self):
        # reference -> descriptor shown on the invoice; first descriptor wins a hash collision
        self.labels: Dict[str, str] = {}
        self._virtual_keys: Dict[str, Dict[str, str]] = {}

    def allocation_key(
        self,
        account_id: str,
        is_marketplace: bool,
        descriptor: Optional[str],
    ) -> str:
        if not is_marketplace or not descriptor:
            return account_id

        reference = marketplace_reference(descriptor)
        self.labels.setdefault(reference, descriptor)

        virtual_key = f"{account_id}{VIRTUAL_KEY_DELIMITER}{reference}"
        self._virtual_keys.setdefault(account_id, {})[reference] = virtual_key
        return virtual_key

    def split(
        self,
        ledger: AllocationLedger,
        account_ids: Iterable[str],
    ) -> Dict[str, AccountAllocation]:
        """Recombine per-key allocation into one AccountAllocation per account"""
        allocations: Dict[str, AccountAllocation] = {}

        for account_id in account_ids:
            base_spend = ledger.spend.get(account_id, ZERO)
            base_credits = ledger.credits_for(account_id)

            allocation = AccountAllocation(
                account_id=account_id,
                spend=base_spend,
                credits=dict(base_credits),
                credit_discounts=ledger.credit_discounts_for(account_id),
                flexsave=ledger.flexsave_for(account_id),
            )

            virtual_keys = self._virtual_keys.get(account_id)
            if virtual_keys:
                allocation.constituents[MARKETPLACE_NONE] = MarketplaceConstituent(
                    key=MARKETPLACE_NONE,
                    label=MARKETPLACE_NONE_LABEL,
                    spend=base_spend,
                    credits=dict(base_credits),
                )
                for reference, virtual_key in virtual_keys.items():
                    constituent = MarketplaceConstituent(
                        key=reference,
                        label=self.labels[reference],
                        spend=ledger.spend.get(virtual_key, ZERO),
                        credits=ledger.credits_for(virtual_key),
                    )
                    allocation.constituents[reference] = constituent
                    allocation.spend += constituent.spend
                    _merge(allocation.credits, constituent.credits)

            allocations[account_id] = allocation

        return allocations
