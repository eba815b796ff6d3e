"""Unit tests for WaterfallAllocator"""

from datetime import date
from decimal import Decimal
from src.domain.credit_ledger import CreditLedger, LedgerCredit
from src.domain.waterfall import AllocationLedger, WaterfallAllocator


def make_credit(credit_id: str, remaining: str, end_date: date, **overrides) -> LedgerCredit:
    data = {
        "id": credit_id,
        "entity_id": "entity_1",
        "amount": Decimal(remaining),
        "remaining": Decimal(remaining),
        "remaining_at_period_start": Decimal(remaining),
        "stored_remaining": Decimal(remaining),
        "start_date": date(2024, 1, 1),
        "end_date": end_date,
    }
    data.update(overrides)
    return LedgerCredit(**data)


def two_credit_allocator() -> WaterfallAllocator:
    return WaterfallAllocator(
        CreditLedger([
            make_credit("B", "100", date(2024, 3, 20)),
            make_credit("A", "10", date(2024, 3, 5)),
        ])
    )


class TestWaterfallAllocation:
    """Test spill-over between credits"""

    def test_residual_spills_to_next_credit(self):
        """
        Given: Credit A (10, ends day 5) and credit B (100, ends day 20)
        When: A cost of 15 is allocated on day 3
        Then: A is drained and depleted, B covers the remaining 5
        """
        # Arrange
        allocator = two_credit_allocator()

        # Act
        result = allocator.allocate(Decimal("15"), date(2024, 3, 3), "entity_1", None, "111")

        # Assert
        assert result.consumed_total == Decimal("15")
        assert result.per_credit == {"A": Decimal("10"), "B": Decimal("5")}
        assert allocator.ledger.spend["111"] == Decimal("15")
        assert allocator.ledger.credits_for("111") == {"A": Decimal("10"), "B": Decimal("5")}

        credit_a = allocator.credits.get("A")
        assert credit_a.remaining == Decimal("0")
        assert credit_a.touched is True
        assert credit_a.depletion_date == date(2024, 3, 3)
        assert allocator.credits.get("B").remaining == Decimal("95")

    def test_cost_beyond_all_credits_stays_as_spend(self):
        # Arrange
        allocator = two_credit_allocator()

        # Act
        result = allocator.allocate(Decimal("500"), date(2024, 3, 3), "entity_1", None, "111")

        # Assert
        assert result.consumed_total == Decimal("110")
        assert allocator.ledger.spend["111"] == Decimal("500")
        assert all(credit.remaining == 0 for credit in allocator.credits)

    def test_balances_never_go_negative(self):
        """
        Given: Many line items exceeding the credit pool
        When: They are allocated one by one
        Then: Every balance stays within [0, amount] and consumption is conserved
        """
        # Arrange
        allocator = two_credit_allocator()
        costs = [Decimal("7.3"), Decimal("12.45"), Decimal("33"), Decimal("80"), Decimal("0.01")]

        # Act
        for day, cost in enumerate(costs, start=1):
            allocator.allocate(cost, date(2024, 3, day), "entity_1", None, "111")

        # Assert
        for credit in allocator.credits:
            assert Decimal("0") <= credit.remaining <= credit.amount
            assert credit.amount - credit.remaining == credit.total_utilization()
        assert allocator.ledger.consumed("111") <= allocator.ledger.spend["111"]

    def test_same_input_produces_same_allocation(self):
        items = [
            (Decimal("4"), date(2024, 3, 1), "111"),
            (Decimal("9"), date(2024, 3, 2), "222"),
            (Decimal("60"), date(2024, 3, 6), "111"),
        ]

        runs = []
        for _ in range(2):
            allocator = two_credit_allocator()
            for cost, day, account in items:
                allocator.allocate(cost, day, "entity_1", None, account)
            runs.append({key: dict(value) for key, value in allocator.ledger.credit_consumption.items()})

        assert runs[0] == runs[1]

    def test_negative_cost_records_spend_only(self):
        # Arrange
        allocator = two_credit_allocator()

        # Act
        result = allocator.allocate(Decimal("-5"), date(2024, 3, 3), "entity_1", None, "111")

        # Assert
        assert result.consumed_total == Decimal("0")
        assert allocator.ledger.spend["111"] == Decimal("-5")
        assert not any(credit.touched for credit in allocator.credits)


class TestWaterfallEligibility:
    """Test that ineligible credits are skipped"""

    def test_other_entity_credit_is_not_used(self):
        allocator = WaterfallAllocator(
            CreditLedger([make_credit("X", "50", date(2025, 1, 1), entity_id="entity_2")])
        )

        result = allocator.allocate(Decimal("10"), date(2024, 3, 3), "entity_1", None, "111")

        assert result.consumed_total == Decimal("0")
        assert allocator.ledger.spend["111"] == Decimal("10")

    def test_expired_credit_is_skipped_for_later_days(self):
        # Arrange
        allocator = two_credit_allocator()

        # Act
        result = allocator.allocate(Decimal("15"), date(2024, 3, 10), "entity_1", None, "111")

        # Assert
        assert result.per_credit == {"B": Decimal("15")}
        assert allocator.credits.get("A").touched is False

    def test_asset_restricted_credit_only_serves_its_asset(self):
        # Arrange
        allocator = WaterfallAllocator(
            CreditLedger([
                make_credit("restricted", "20", date(2025, 1, 1), assets=["amazon-web-services-111"]),
                make_credit("open", "20", date(2025, 1, 1)),
            ])
        )

        # Act
        other = allocator.allocate(Decimal("5"), date(2024, 3, 1), "entity_1", "amazon-web-services-222", "222")
        own = allocator.allocate(Decimal("5"), date(2024, 3, 1), "entity_1", "amazon-web-services-111", "111")

        # Assert
        assert other.per_credit == {"open": Decimal("5")}
        assert own.per_credit == {"restricted": Decimal("5")}

    def test_shared_allocation_ledger_accumulates(self):
        ledger = AllocationLedger()
        first = WaterfallAllocator(CreditLedger([]), ledger)
        second = WaterfallAllocator(CreditLedger([]), ledger)

        first.allocate(Decimal("2"), date(2024, 3, 1), "entity_1", None, "111")
        second.allocate(Decimal("3"), date(2024, 3, 1), "entity_1", None, "111")

        assert ledger.spend["111"] == Decimal("5")


class TestWaterfallContractDiscount:
    """Test credits drawn at list price under a contract discount"""

    def test_terminal_draw_books_discount_key(self):
        """
        Given: One credit of 100 and a 10% contract discount
        When: A list cost of 40 is allocated
        Then: 40 is drawn, 36 is booked for the account and 4 under its discount key
        """
        # Arrange
        allocator = WaterfallAllocator(CreditLedger([make_credit("A", "100", date(2025, 1, 1))]))

        # Act
        result = allocator.allocate(
            Decimal("40"), date(2024, 3, 3), "entity_1", None, "project-a", discount=Decimal("0.9")
        )

        # Assert
        credit = allocator.credits.get("A")
        assert result.per_credit == {"A": Decimal("40")}
        assert credit.remaining == Decimal("60")
        assert credit.utilization == {
            "2024-03": {"project-a": Decimal("36"), "project-a-discount": Decimal("4")}
        }
        assert allocator.ledger.spend["project-a"] == Decimal("36")
        assert allocator.ledger.credit_discounts_for("project-a") == {"A": Decimal("4")}

    def test_partial_draw_books_discount_key_on_every_credit(self):
        """
        Given: Credit A (10, ends day 5), credit B (100) and a 10% contract discount
        When: A list cost of 15 is allocated on day 3
        Then: Both credits split their draw between the account and its discount key
        """
        # Arrange
        allocator = two_credit_allocator()

        # Act
        result = allocator.allocate(
            Decimal("15"), date(2024, 3, 3), "entity_1", None, "project-a", discount=Decimal("0.9")
        )

        # Assert
        assert result.per_credit == {"A": Decimal("10"), "B": Decimal("5")}

        credit_a = allocator.credits.get("A")
        assert credit_a.remaining == Decimal("0")
        assert credit_a.depletion_date == date(2024, 3, 3)
        assert credit_a.utilization["2024-03"] == {
            "project-a": Decimal("9"),
            "project-a-discount": Decimal("1"),
        }
        assert allocator.credits.get("B").utilization["2024-03"] == {
            "project-a": Decimal("4.5"),
            "project-a-discount": Decimal("0.5"),
        }
        assert allocator.ledger.spend["project-a"] == Decimal("13.5")
        assert allocator.ledger.credit_discounts_for("project-a") == {
            "A": Decimal("1"),
            "B": Decimal("0.5"),
        }

    def test_no_discount_key_without_contract(self):
        allocator = WaterfallAllocator(CreditLedger([make_credit("A", "100", date(2025, 1, 1))]))

        allocator.allocate(Decimal("40"), date(2024, 3, 3), "entity_1", None, "project-a")

        assert allocator.credits.get("A").utilization == {"2024-03": {"project-a": Decimal("40")}}
        assert allocator.ledger.credit_discounts_for("project-a") == {}
