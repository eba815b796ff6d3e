"""Contract Charges (PLPS) and their re-rating

A contract charge is a percentage applied to usage for a time window.
The analytics warehouse prices PLPS rows at a single default percent; the
recalculator re-rates each row to the percent of the contract interval that
covers its date.
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Union
from pydantic import BaseModel as PydanticBaseModel
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, JSON, Numeric, String
from src.domain.base import BaseModel, generate_uuid
from src.domain.exceptions import NoSuitableContractIntervalError

logger = logging.getLogger(__name__)


class ContractCharge(BaseModel, table=True):
    """
    Contract Charge - percentage charge of a customer contract

    Domain Rules:
    - end_date is exclusive; None means on-demand (open ended)
    - Empty asset_ids means the charge covers every asset of the product type
    """

    __tablename__ = "contract_charges"
    __table_args__ = (
        Index('ix_contract_charges_customer_type', 'customer_id', 'product_type'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    customer_id: str
    product_type: str

    asset_ids: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
    )

    percent: Decimal = Field(
        sa_column=Column(Numeric(9, 4), nullable=False),
        description="Charge percentage (e.g., 5 for 5%)"
    )

    start_date: date = Field(
        sa_column=Column(Date, nullable=False),
    )

    end_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
    )

    active: bool = True


class ContractChargeInterval(PydanticBaseModel):
    """Half-open [start_date, end_date) window charged at percent"""

    start_date: date
    end_date: date
    percent: Decimal

    def covers(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


def build_contract_charge_intervals(
    charges: Sequence[ContractCharge],
    asset_id: str,
    period_start: date,
    period_end: date,
) -> List[ContractChargeInterval]:
    """
    Select the intervals that apply to an asset during a billing period

    Open ended charges are capped at the day after period_end.
    """
    intervals = []
    for charge in charges:
        if not charge.active:
            continue
        if charge.asset_ids and asset_id not in charge.asset_ids:
            continue

        end_date = charge.end_date or period_end + timedelta(days=1)
        if charge.start_date > period_end or end_date <= period_start:
            continue

        intervals.append(
            ContractChargeInterval(
                start_date=charge.start_date,
                end_date=end_date,
                percent=Decimal(charge.percent),
            )
        )

    intervals.sort(key=lambda interval: (interval.start_date, interval.end_date))
    return intervals


class ContractChargeRecalculator:
    """
    Re-rates a cost priced at current_percent to the covering interval's percent

    Usage:
        recalculator = ContractChargeRecalculator(intervals, Decimal("3"))
        try:
            cost = recalculator.recalculate(row.cost, row.usage_date)
        except NoSuitableContractIntervalError:
            pass  # keep row.cost
    """

    def __init__(self, intervals: Sequence[ContractChargeInterval], current_percent: Decimal):
        if current_percent == 0:
            raise ValueError("current_percent must be non-zero")
        self.intervals = list(intervals)
        self.current_percent = Decimal(current_percent)

    def recalculate(self, cost: Decimal, when: Union[date, datetime]) -> Decimal:
        """
        Args:
            cost: Cost priced at current_percent
            when: Row date (time of day is ignored)

        Returns:
            Cost priced at the percent of the first interval covering the date

        Raises:
            NoSuitableContractIntervalError: No interval covers the date
        """
        day = when.date() if isinstance(when, datetime) else when

        for interval in self.intervals:
            if interval.covers(day):
                return (cost / self.current_percent) * interval.percent

        raise NoSuitableContractIntervalError(
            f"no contract charge interval covers {day.isoformat()}"
        )

    def recalculate_or_keep(self, cost: Decimal, when: Union[date, datetime]) -> Decimal:
        """Recalculate, falling back to the original cost when no interval applies"""
        try:
            return self.recalculate(cost, when)
        except NoSuitableContractIntervalError as e:
            logger.warning(f"Keeping original contract charge {cost}: {e}")
            return cost
