"""Unit tests for contract discount terms"""

import pytest
from datetime import date
from decimal import Decimal
from src.domain.contract_discount import (
    NO_CONTRACT_TERMS,
    ContractDiscount,
    ContractDiscountSchedule,
    discount_allocation_key,
    to_proportion,
)


def make_discount(discount_id: str, percent: str, start: date, end=None, **overrides) -> ContractDiscount:
    data = {
        "id": discount_id,
        "customer_id": "customer_123",
        "product_type": "google-cloud",
        "discount_percent": Decimal(percent),
        "start_date": start,
        "end_date": end,
    }
    data.update(overrides)
    return ContractDiscount(**data)


@pytest.fixture
def schedule():
    """10% until March, 20% from March on"""
    return ContractDiscountSchedule([
        make_discount("later", "20", date(2024, 3, 1)),
        make_discount("earlier", "10", date(2024, 1, 1), date(2024, 3, 1)),
    ])


class TestToProportion:

    def test_percent_off_becomes_multiplier(self):
        assert to_proportion(Decimal("9.5")) == Decimal("0.905")

    def test_zero_percent_is_identity(self):
        assert to_proportion(Decimal("0")) == Decimal("1")

    def test_discount_key_suffix(self):
        assert discount_allocation_key("project-a") == "project-a-discount"


class TestContractDiscountSchedule:
    """Test the contract covering a usage day"""

    def test_end_date_is_exclusive(self, schedule):
        assert schedule.terms_for(date(2024, 2, 29)).discount == Decimal("0.9")
        assert schedule.terms_for(date(2024, 3, 1)).discount == Decimal("0.8")

    def test_day_before_any_contract_is_list_price(self, schedule):
        assert schedule.terms_for(date(2023, 12, 31)) == NO_CONTRACT_TERMS

    def test_no_contracts(self):
        terms = ContractDiscountSchedule([]).terms_for(date(2024, 3, 1))

        assert terms.has_discount is False
        assert terms.rebase_modifier == Decimal("1")

    def test_first_contract_by_start_date_wins(self):
        """
        Given: Two open ended contracts overlapping in March
        When: Terms are requested for a March day
        Then: The one starting first applies
        """
        # Arrange
        schedule = ContractDiscountSchedule([
            make_discount("b", "30", date(2024, 2, 1)),
            make_discount("a", "5", date(2024, 1, 1)),
        ])

        # Act
        terms = schedule.terms_for(date(2024, 3, 10))

        # Assert
        assert terms.discount == Decimal("0.95")

    def test_rebase_is_applied_with_discount(self):
        schedule = ContractDiscountSchedule([
            make_discount("a", "10", date(2024, 1, 1), rebase_percent=Decimal("2")),
        ])

        terms = schedule.terms_for(date(2024, 3, 10))

        assert terms.discount == Decimal("0.9")
        assert terms.rebase_modifier == Decimal("0.98")

    def test_preemptible_usage_is_list_price_by_default(self, schedule):
        assert schedule.terms_for(date(2024, 3, 10), preemptible=True) == NO_CONTRACT_TERMS

    def test_preemptible_usage_discounted_when_contract_allows(self):
        schedule = ContractDiscountSchedule([
            make_discount("a", "10", date(2024, 1, 1), discount_preemptible=True),
        ])

        assert schedule.terms_for(date(2024, 3, 10), preemptible=True).discount == Decimal("0.9")
