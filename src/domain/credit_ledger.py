"""Credit Ledger

In-memory, per-worker copy of a customer's credits for one product type
and invoice month. Loaded once per run, mutated only by the waterfall
allocation, and handed back to persistence as CreditMutation values.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Sequence
from pydantic import BaseModel, Field
from src.domain.contract_discount import ONE, discount_allocation_key
from src.domain.credit import Credit
from src.domain.exceptions import DataQualityError

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
# Balances below this after re-derivation are rounding leftovers
REMAINING_EPSILON = Decimal("0.0001")


def month_key(day: date) -> str:
    return day.strftime("%Y-%m")


def owns_allocation_key(key: str, account_ids: Iterable[str]) -> bool:
    """
    Whether a utilization key was written by one of the given accounts

    Keys are the account id itself, a marketplace virtual key
    (account__marketplace_<hash>) or a suffixed key (account-discount).
    """
    for account_id in account_ids:
        if key == account_id or key.startswith(f"{account_id}__") or key == discount_allocation_key(account_id):
            return True
    return False


class CreditMutation(BaseModel):
    """Changes of one touched credit to be written back under a version check"""

    credit_id: str
    version: int
    remaining: Decimal
    previous_remaining: Decimal
    utilization: Dict[str, Dict[str, Decimal]]
    depletion_date: Optional[date] = None

    @property
    def newly_depleted(self) -> bool:
        return self.remaining <= 0 < self.previous_remaining

    def serialized_utilization(self) -> Dict[str, Dict[str, str]]:
        return {
            period: {key: str(amount) for key, amount in usage.items()}
            for period, usage in self.utilization.items()
        }


class LedgerCredit(BaseModel):
    """
    Mutable working copy of a Credit

    Domain Rules:
    - remaining stays within [0, amount]
    - touched is set on every consumption
    - depletion_date is the day remaining reached zero
    - released credits are written back even when nothing consumes them
    """

    id: str
    entity_id: str
    name: str = ""
    amount: Decimal
    remaining: Decimal
    remaining_at_period_start: Decimal
    stored_remaining: Decimal
    start_date: date
    end_date: date
    assets: List[str] = Field(default_factory=list)
    scope: List[str] = Field(default_factory=list)
    utilization: Dict[str, Dict[str, Decimal]] = Field(default_factory=dict)
    depletion_date: Optional[date] = None
    touched: bool = False
    # Own invoice_month usage was discarded at load and must be written back
    released: bool = False
    version: int = 1

    def is_eligible(
        self,
        entity_id: str,
        asset_id: Optional[str],
        scope_key: Optional[str],
        day: date,
    ) -> bool:
        if self.entity_id != entity_id:
            return False
        if self.assets and asset_id not in self.assets:
            return False
        if self.scope and scope_key not in self.scope:
            return False
        if self.remaining <= 0:
            return False
        return self.start_date <= day < self.end_date

    def consume(
        self, amount: Decimal, allocation_key: str, day: date, discount: Decimal = ONE
    ) -> None:
        """
        Record amount against utilization[YYYY-MM][allocation_key]

        With a contract discount only the discounted amount is booked under
        allocation_key; the rest goes to allocation_key-discount.
        """
        usage = self.utilization.setdefault(month_key(day), {})
        booked = amount * discount
        usage[allocation_key] = usage.get(allocation_key, ZERO) + booked
        if discount != ONE:
            discount_key = discount_allocation_key(allocation_key)
            usage[discount_key] = usage.get(discount_key, ZERO) + (amount - booked)

        self.remaining -= amount
        self.touched = True

        if self.remaining <= 0:
            self.remaining = ZERO
            self.depletion_date = day

    def total_utilization(self) -> Decimal:
        return sum(
            (amount for usage in self.utilization.values() for amount in usage.values()),
            ZERO,
        )

    def priority_key(self):
        """
        Waterfall order: most restricted first, then earliest end date,
        earliest start date, smallest balance and finally credit id.
        """
        return (
            -len(self.assets),
            -len(self.scope),
            self.end_date,
            self.start_date,
            self.remaining,
            self.id,
        )


class CreditLedger:
    """
    Priority-sorted collection of LedgerCredit for one worker

    Usage:
        ledger = CreditLedger.load(credits, invoice_month, account_ids)
        for credit in ledger:
            ...
        mutations = ledger.mutations()
    """

    def __init__(self, credits: Sequence[LedgerCredit]):
        self._credits = sorted(credits, key=lambda credit: credit.priority_key())

    def __iter__(self) -> Iterator[LedgerCredit]:
        return iter(self._credits)

    def __len__(self) -> int:
        return len(self._credits)

    def get(self, credit_id: str) -> Optional[LedgerCredit]:
        for credit in self._credits:
            if credit.id == credit_id:
                return credit
        return None

    @property
    def names(self) -> Dict[str, str]:
        return {credit.id: credit.name for credit in self._credits}

    @classmethod
    def load(
        cls,
        records: Sequence[Credit],
        invoice_month: date,
        account_ids: Iterable[str],
    ) -> "CreditLedger":
        """
        Re-derive each credit's balance at the start of invoice_month

        - remaining = amount - utilization of all months before invoice_month
        - invoice_month utilization written by account_ids is discarded so a
          re-run for the same month starts from the same balance
        - invoice_month utilization of other accounts is subtracted
        - only credits with a positive balance become candidates, plus credits
          whose own usage was discarded so the stale entries get written back

        Raises:
            DataQualityError: A record has no billing entity or no end date
        """
        account_ids = list(account_ids)
        period = month_key(invoice_month)
        candidates = []

        for record in records:
            if not record.entity_id:
                raise DataQualityError(f"credit {record.id} has no billing entity")
            if record.end_date is None:
                raise DataQualityError(f"credit {record.id} has no end date")

            if month_key(record.start_date) > period:
                continue
            if record.end_date <= invoice_month.replace(day=1):
                continue

            amount = Decimal(record.amount)
            utilization = _parse_utilization(record)

            remaining = amount
            for month, usage in utilization.items():
                if month < period:
                    remaining -= sum(usage.values(), ZERO)
            if remaining < REMAINING_EPSILON:
                remaining = ZERO
            remaining_at_period_start = remaining

            released = False
            current = utilization.get(period, {})
            for key in list(current):
                if owns_allocation_key(key, account_ids):
                    del current[key]
                    released = True
                else:
                    remaining -= current[key]
            if not current:
                utilization.pop(period, None)

            if remaining <= 0:
                if not released:
                    continue
                # Kept only to clear its stale usage; never eligible
                remaining = ZERO

            candidates.append(
                LedgerCredit(
                    id=record.id,
                    entity_id=record.entity_id,
                    name=record.name,
                    amount=amount,
                    remaining=remaining,
                    remaining_at_period_start=remaining_at_period_start,
                    stored_remaining=Decimal(record.remaining),
                    start_date=record.start_date,
                    end_date=record.end_date,
                    assets=list(record.assets or []),
                    scope=list(record.scope or []),
                    utilization=utilization,
                    depletion_date=record.depletion_date if remaining <= 0 else None,
                    released=released,
                    version=record.version,
                )
            )

        logger.debug(f"Loaded {len(candidates)}/{len(records)} credits for {period}")
        return cls(candidates)

    def mutations(self) -> List[CreditMutation]:
        return [
            CreditMutation(
                credit_id=credit.id,
                version=credit.version,
                remaining=credit.remaining,
                previous_remaining=credit.stored_remaining,
                utilization=credit.utilization,
                depletion_date=credit.depletion_date,
            )
            for credit in self._credits
            if credit.touched or credit.released
        ]


def _parse_utilization(record: Credit) -> Dict[str, Dict[str, Decimal]]:
    try:
        return {
            period: {key: Decimal(str(amount)) for key, amount in usage.items()}
            for period, usage in (record.utilization or {}).items()
        }
    except (ArithmeticError, AttributeError, ValueError) as e:
        raise DataQualityError(f"credit {record.id} has malformed utilization: {e}") from e
