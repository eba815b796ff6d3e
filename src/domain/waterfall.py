"""Waterfall Allocation Engine

Consumes cost line items one at a time against a CreditLedger. The most
restricted, soonest expiring credit is drawn first and any residual spills
to the next eligible credit.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Optional
from pydantic import BaseModel
from src.domain.contract_discount import ONE
from src.domain.cost_line_item import FlexsaveCostType
from src.domain.credit_ledger import CreditLedger, ZERO


class AllocationResult(BaseModel):
    consumed_total: Decimal
    per_credit: Dict[str, Decimal]


class AllocationLedger:
    """
    Spend and credit consumption of one invoicing run

    Domain Rules:
    - spend always carries the full (discounted) cost, never netted by credits
    - Σ credit_consumption[key][*] <= Σ spend[key] for positive costs
    """

    def __init__(self):
        self.spend: Dict[str, Decimal] = defaultdict(Decimal)
        self.credit_consumption: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: defaultdict(Decimal)
        )
        # Part of credit_consumption given back as the contract discount
        self.credit_discounts: Dict[str, Dict[str, Decimal]] = defaultdict(
            lambda: defaultdict(Decimal)
        )
        self.flexsave: Dict[str, Dict[FlexsaveCostType, Decimal]] = defaultdict(
            lambda: defaultdict(Decimal)
        )

    def record_spend(self, account_key: str, cost: Decimal) -> None:
        self.spend[account_key] += cost

    def record_consumption(self, account_key: str, credit_id: str, amount: Decimal) -> None:
        self.credit_consumption[account_key][credit_id] += amount

    def record_credit_discount(self, account_key: str, credit_id: str, amount: Decimal) -> None:
        self.credit_discounts[account_key][credit_id] += amount

    def record_flexsave(self, account_key: str, cost_type: FlexsaveCostType, cost: Decimal) -> None:
        self.flexsave[account_key][cost_type] += cost

    def consumed(self, account_key: str) -> Decimal:
        return sum(self.credit_consumption.get(account_key, {}).values(), ZERO)

    def credits_for(self, account_key: str) -> Dict[str, Decimal]:
        return dict(self.credit_consumption.get(account_key, {}))

    def credit_discounts_for(self, account_key: str) -> Dict[str, Decimal]:
        return dict(self.credit_discounts.get(account_key, {}))

    def flexsave_for(self, account_key: str) -> Dict[FlexsaveCostType, Decimal]:
        return dict(self.flexsave.get(account_key, {}))


class WaterfallAllocator:
    """
    Allocates costs against a priority-sorted CreditLedger

    Usage:
        allocator = WaterfallAllocator(CreditLedger.load(...))
        allocator.allocate(Decimal("15"), day, "entity_1", asset_id, "123456789012")
        allocator.ledger.spend["123456789012"]
    """

    def __init__(self, credits: CreditLedger, ledger: Optional[AllocationLedger] = None):
        self.credits = credits
        self.ledger = ledger or AllocationLedger()

    def allocate(
        self,
        cost: Decimal,
        day: date,
        entity_id: str,
        asset_id: Optional[str],
        account_key: str,
        scope_key: Optional[str] = None,
        discount: Decimal = ONE,
    ) -> AllocationResult:
        """
        Allocate one cost line item

        Args:
            cost: Raw cost of the line item
            day: Usage date
            entity_id: Billing entity of the account
            asset_id: Asset of the account (matched against credit asset restrictions)
            account_key: Allocation key (account id or marketplace virtual key)
            scope_key: Resource key (matched against credit scope restrictions)
            discount: Contract discount multiplier; credits are drawn at the
                list cost and spend is recorded at the discounted cost

        Returns:
            AllocationResult with the consumed total and per credit amounts
        """
        self.ledger.record_spend(account_key, cost * discount)

        residual = cost
        per_credit: Dict[str, Decimal] = {}

        for credit in self.credits:
            if residual <= 0:
                break
            if not credit.is_eligible(entity_id, asset_id, scope_key, day):
                continue

            if residual > credit.remaining:
                # Partial: drain this credit and keep scanning with the residual
                amount = credit.remaining
                credit.consume(amount, account_key, day, discount)
                credit.depletion_date = day
                residual -= amount
            else:
                amount = residual
                credit.consume(amount, account_key, day, discount)
                residual = ZERO

            per_credit[credit.id] = per_credit.get(credit.id, ZERO) + amount
            self.ledger.record_consumption(account_key, credit.id, amount)
            if discount != ONE:
                self.ledger.record_credit_discount(account_key, credit.id, amount - amount * discount)

        return AllocationResult(
            consumed_total=sum(per_credit.values(), ZERO),
            per_credit=per_credit,
        )
