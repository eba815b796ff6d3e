"""Contract Discounts

Customer contracts may discount usage (e.g. 9.5% off list price) and rebase
the list price itself. Credits are drawn at list price; the discounted part
of every drawn amount is booked under the account's "-discount" allocation
key so the credit's utilization still adds up to what it covered.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence
from pydantic import BaseModel as PydanticBaseModel
from sqlmodel import Field, Column, Index
from sqlalchemy import Date, Numeric, String
from src.domain.base import BaseModel, generate_uuid

ONE = Decimal("1")
HUNDRED = Decimal("100")
DISCOUNT_KEY_SUFFIX = "-discount"


def to_proportion(percent: Decimal) -> Decimal:
    """9.5 (percent off) -> 0.905 (multiplier)"""
    return (HUNDRED - Decimal(percent)) / HUNDRED


def discount_allocation_key(account_key: str) -> str:
    return f"{account_key}{DISCOUNT_KEY_SUFFIX}"


class ContractDiscount(BaseModel, table=True):
    """
    Contract Discount - usage discount of a customer contract

    Domain Rules:
    - end_date is exclusive; None means open ended
    - discount_percent of 0 means no discount (rebase may still apply)
    - Preemptible usage is only discounted when discount_preemptible is set
    """

    __tablename__ = "contract_discounts"
    __table_args__ = (
        Index('ix_contract_discounts_customer_type', 'customer_id', 'product_type'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        sa_column=Column(String(64), primary_key=True),
    )

    customer_id: str
    product_type: str

    discount_percent: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(9, 4), nullable=False),
        description="Percent off list price (e.g., 9.5)"
    )

    rebase_percent: Decimal = Field(
        default=Decimal("0"),
        sa_column=Column(Numeric(9, 4), nullable=False),
        description="Percent taken off the list price before discounting"
    )

    discount_preemptible: bool = False

    start_date: date = Field(
        sa_column=Column(Date, nullable=False),
    )

    end_date: Optional[date] = Field(
        default=None,
        sa_column=Column(Date, nullable=True),
    )


class ContractTerms(PydanticBaseModel):
    """Multipliers applied to one cost line item"""

    discount: Decimal = ONE
    rebase_modifier: Decimal = ONE

    @property
    def has_discount(self) -> bool:
        return self.discount != ONE


NO_CONTRACT_TERMS = ContractTerms()


class ContractDiscountSchedule:
    """
    Picks the contract terms of a usage day

    The first contract (by start date) whose window covers the day wins.
    Preemptible usage under a contract that does not discount preemptible
    usage is priced at list.
    """

    def __init__(self, discounts: Sequence[ContractDiscount]):
        self.discounts: List[ContractDiscount] = sorted(
            discounts, key=lambda discount: (discount.start_date, discount.id)
        )

    def terms_for(self, day: date, preemptible: bool = False) -> ContractTerms:
        for discount in self.discounts:
            if day < discount.start_date:
                continue
            if discount.end_date is not None and day >= discount.end_date:
                continue

            if preemptible and not discount.discount_preemptible:
                return NO_CONTRACT_TERMS

            return ContractTerms(
                discount=to_proportion(discount.discount_percent),
                rebase_modifier=to_proportion(discount.rebase_percent),
            )

        return NO_CONTRACT_TERMS
