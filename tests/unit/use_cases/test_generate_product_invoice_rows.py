"""Unit tests for GenerateProductInvoiceRows use case

Tests cover:
- Allocation of line items against credits and row assembly
- Marketplace virtual keys and Flexsave negations
- PLPS re-rating with and without a covering contract
- Google Cloud contract discounts against credits
- Configuration and data quality failures
"""

import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

from src.app.use_cases.invoicing.dtos import CustomerInvoicingTaskDTO
from src.app.use_cases.invoicing.generate_product_invoice_rows import (
    GenerateProductInvoiceRows,
    processing_order,
)
from src.domain.asset_settings import AssetSettings
from src.domain.billing_entity import BillingEntity
from src.domain.contract_charge import ContractCharge
from src.domain.contract_discount import ContractDiscount
from src.domain.cost_line_item import CostLineItem
from src.domain.credit import Credit
from src.domain.invoice_row import RowRank
from src.domain.product import ProductType

MARCH = date(2024, 3, 1)


def line_item(item_id: str, cost: str, day: int, account_id: str = "111", **overrides) -> CostLineItem:
    data = {
        "id": item_id,
        "customer_id": "customer_123",
        "product_type": ProductType.AMAZON_WEB_SERVICES.value,
        "account_id": account_id,
        "usage_date": date(2024, 3, day),
        "cost": Decimal(cost),
    }
    data.update(overrides)
    return CostLineItem(**data)


@pytest.fixture
def entities():
    return {"entity_1": BillingEntity(id="entity_1", customer_id="customer_123", name="Acme")}


@pytest.fixture
def task():
    return CustomerInvoicingTaskDTO(
        customer_id="customer_123",
        invoice_month=MARCH,
        now=datetime(2024, 4, 3),
        final=True,
    )


@pytest.fixture
def repos():
    """Mocked repositories with one AWS account assigned to entity_1"""
    cost_repo = MagicMock()
    credit_repo = MagicMock()
    adjustment_repo = MagicMock()
    asset_settings_repo = MagicMock()
    contract_charge_repo = MagicMock()
    contract_discount_repo = MagicMock()

    cost_repo.get_for_month = AsyncMock(return_value=[])
    credit_repo.get_for_month = AsyncMock(return_value=[])
    adjustment_repo.get_for_month = AsyncMock(return_value=[])
    contract_charge_repo.get_by_customer = AsyncMock(return_value=[])
    contract_discount_repo.get_by_customer = AsyncMock(return_value=[])

    async def get_by_ids(asset_ids):
        return {
            asset_id: AssetSettings(id=asset_id, customer_id="customer_123", entity_id="entity_1")
            for asset_id in asset_ids
        }

    asset_settings_repo.get_by_ids = AsyncMock(side_effect=get_by_ids)

    return {
        "cost_repo": cost_repo,
        "credit_repo": credit_repo,
        "adjustment_repo": adjustment_repo,
        "asset_settings_repo": asset_settings_repo,
        "contract_charge_repo": contract_charge_repo,
        "contract_discount_repo": contract_discount_repo,
    }


def make_use_case(repos, product_type=ProductType.AMAZON_WEB_SERVICES, **kwargs):
    return GenerateProductInvoiceRows(product_type=product_type, **repos, **kwargs)


@pytest.mark.asyncio
class TestGenerateProductInvoiceRowsSuccess:
    """Test successful row generation"""

    async def test_allocates_credits_and_returns_mutations(self, repos, task, entities):
        """
        Given: One account with 15 of usage and a 10 credit
        When: Rows are generated
        Then: A line item of 15, a credit row of -10 and one credit mutation
        """
        # Arrange
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("b", "5", 2),
            line_item("a", "10", 1),
        ])
        repos["credit_repo"].get_for_month = AsyncMock(return_value=[
            Credit(
                id="credit_1",
                customer_id="customer_123",
                entity_id="entity_1",
                product_type=ProductType.AMAZON_WEB_SERVICES.value,
                name="Launch credit",
                amount=Decimal("10"),
                remaining=Decimal("10"),
                start_date=date(2024, 1, 1),
                end_date=date(2025, 1, 1),
                version=4,
            )
        ])

        # Act
        result = await make_use_case(repos).execute(task, entities)

        # Assert
        assert result.is_ok()
        rows = result.value.rows
        assert [(row.rank, row.total) for row in rows] == [
            (RowRank.LINE_ITEM, Decimal("15")),
            (RowRank.CREDIT, Decimal("-10")),
        ]
        assert all(row.final for row in rows)

        mutation = result.value.credit_mutations[0]
        assert mutation.credit_id == "credit_1"
        assert mutation.version == 4
        assert mutation.remaining == Decimal("0")
        assert mutation.depletion_date == date(2024, 3, 1)

    async def test_marketplace_items_use_virtual_keys(self, repos, task):
        # Arrange
        entities = {
            "entity_1": BillingEntity(
                id="entity_1", customer_id="customer_123", name="Acme", marketplace_separate_invoice=True
            )
        }
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "12", 1),
            line_item("b", "8", 1, is_marketplace=True, marketplace_descriptor="mangoDB"),
        ])

        # Act
        result = await make_use_case(repos).execute(task, entities)

        # Assert
        rows = result.value.rows
        assert [row.details for row in rows] == [
            "Account #111 : excluding Marketplace costs",
            "Account #111 : mangoDB",
        ]
        assert rows[1].category == "marketplace_aggregate"

    async def test_flexsave_negation_is_reported_separately(self, repos, task, entities):
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "100", 1),
            line_item("b", "-30", 1, cost_classification="FlexsaveNegation"),
        ])

        result = await make_use_case(repos).execute(task, entities)

        rows = result.value.rows
        assert [row.total for row in rows] == [Decimal("100"), Decimal("-30")]
        assert rows[1].rank == RowRank.ADJUSTMENT

    async def test_flexsave_charges_bypass_credits(self, repos, task, entities):
        """
        Given: 20 of usage, a 7 management fee and a 3 RDS charge with a 100 credit
        When: Rows are generated
        Then: Only the usage is covered by the credit
        And: Each charge gets its own Flexsave row
        """
        # Arrange
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "20", 1),
            line_item("b", "7", 1, cost_classification="FlexsaveManagementFee"),
            line_item("c", "3", 2, cost_classification="FlexsaveRDSCharges"),
        ])
        repos["credit_repo"].get_for_month = AsyncMock(return_value=[
            Credit(
                id="credit_1",
                customer_id="customer_123",
                entity_id="entity_1",
                product_type=ProductType.AMAZON_WEB_SERVICES.value,
                name="Launch credit",
                amount=Decimal("100"),
                remaining=Decimal("100"),
                start_date=date(2024, 1, 1),
                end_date=date(2025, 1, 1),
            )
        ])

        # Act
        result = await make_use_case(repos).execute(task, entities)

        # Assert
        rows = result.value.rows
        assert [(row.details, row.total) for row in rows] == [
            ("Account #111", Decimal("20")),
            ("Launch credit", Decimal("-20")),
            ("Flexsave Management Costs", Decimal("7")),
            ("Flexsave RDS Charges", Decimal("3")),
        ]
        assert result.value.credit_mutations[0].remaining == Decimal("80")

    async def test_flexsave_savings_types_are_labelled_separately(self, repos, task, entities):
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "100", 1),
            line_item("b", "-10", 1, cost_classification="FlexsaveComputeNegation"),
            line_item("c", "-4", 1, cost_classification="FlexsaveSagemakerNegation"),
            line_item("d", "-6", 1, cost_classification="FlexsaveRDSNegation"),
        ])

        result = await make_use_case(repos).execute(task, entities)

        rows = result.value.rows
        assert [(row.details, row.total) for row in rows] == [
            ("Account #111", Decimal("100")),
            ("Flexsave Compute Savings", Decimal("-10")),
            ("Flexsave SageMaker Savings", Decimal("-4")),
            ("Flexsave RDS Savings", Decimal("-6")),
        ]

    async def test_plps_rows_are_rerated(self, repos, task, entities):
        """
        Given: A PLPS row priced at 3% and a 6% contract charge for March
        When: Rows are generated
        Then: The row cost is doubled; other rows keep their cost
        """
        # Arrange
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "30", 4, account_id="project-a", product_type="google-cloud", sku_id="plps"),
            line_item("b", "70", 4, account_id="project-a", product_type="google-cloud", sku_id="compute"),
        ])
        repos["contract_charge_repo"].get_by_customer = AsyncMock(return_value=[
            ContractCharge(
                id="charge_1",
                customer_id="customer_123",
                product_type="google-cloud",
                percent=Decimal("6"),
                start_date=date(2024, 1, 1),
            )
        ])
        use_case = make_use_case(
            repos, ProductType.GOOGLE_CLOUD, plps_sku_id="plps", plps_default_percent=Decimal("3")
        )

        # Act
        result = await use_case.execute(task, entities)

        # Assert
        assert result.value.rows[0].total == Decimal("130")
        assert result.value.rows[0].details == "Project project-a"

    async def test_contract_discount_draws_credits_at_list_price(self, repos, task, entities):
        """
        Given: A 10% Google Cloud contract, a 100 credit and 100 of usage plus 20 excluded from discounts
        When: Rows are generated
        Then: Spend is discounted, the credit draws list price and the discount is given back on its own row
        """
        # Arrange
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "100", 4, account_id="project-a", product_type="google-cloud"),
            line_item("b", "20", 5, account_id="project-a", product_type="google-cloud", exclude_discount=True),
        ])
        repos["contract_discount_repo"].get_by_customer = AsyncMock(return_value=[
            ContractDiscount(
                id="discount_1",
                customer_id="customer_123",
                product_type="google-cloud",
                discount_percent=Decimal("10"),
                start_date=date(2024, 1, 1),
            )
        ])
        repos["credit_repo"].get_for_month = AsyncMock(return_value=[
            Credit(
                id="credit_1",
                customer_id="customer_123",
                entity_id="entity_1",
                product_type="google-cloud",
                name="Commit credit",
                amount=Decimal("100"),
                remaining=Decimal("100"),
                start_date=date(2024, 1, 1),
                end_date=date(2025, 1, 1),
            )
        ])

        # Act
        result = await make_use_case(repos, ProductType.GOOGLE_CLOUD).execute(task, entities)

        # Assert
        assert [(row.details, row.total) for row in result.value.rows] == [
            ("Project project-a", Decimal("110")),
            ("Commit credit", Decimal("-100")),
            ("Commit credit (Adjustment for Discount)", Decimal("10")),
        ]
        mutation = result.value.credit_mutations[0]
        assert mutation.remaining == Decimal("0")
        assert mutation.utilization == {
            "2024-03": {"project-a": Decimal("90"), "project-a-discount": Decimal("10")}
        }

    async def test_contract_discount_is_not_applied_to_aws(self, repos, task, entities):
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[line_item("a", "100", 4)])
        repos["contract_discount_repo"].get_by_customer = AsyncMock(return_value=[
            ContractDiscount(
                id="discount_1",
                customer_id="customer_123",
                product_type="amazon-web-services",
                discount_percent=Decimal("10"),
                start_date=date(2024, 1, 1),
            )
        ])

        result = await make_use_case(repos).execute(task, entities)

        assert result.value.rows[0].total == Decimal("100")
        repos["contract_discount_repo"].get_by_customer.assert_not_called()

    async def test_plps_without_contract_keeps_cost(self, repos, task, entities):
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[
            line_item("a", "30", 4, account_id="project-a", product_type="google-cloud", sku_id="plps"),
        ])
        use_case = make_use_case(repos, ProductType.GOOGLE_CLOUD, plps_sku_id="plps")

        result = await use_case.execute(task, entities)

        assert result.value.rows[0].total == Decimal("30")


@pytest.mark.asyncio
class TestGenerateProductInvoiceRowsErrors:
    """Test failures are returned as error results"""

    async def test_unassigned_account_is_configuration_error(self, repos, task, entities):
        # Arrange
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[line_item("a", "10", 1)])
        repos["asset_settings_repo"].get_by_ids = AsyncMock(return_value={})

        # Act
        result = await make_use_case(repos).execute(task, entities)

        # Assert
        assert result.is_err()
        assert result.error.code == "CONFIGURATION_ERROR"

    async def test_non_numeric_cost_is_data_quality_error(self, repos, task, entities):
        item = line_item("a", "10", 1)
        item.cost = "ten"
        repos["cost_repo"].get_for_month = AsyncMock(return_value=[item])

        result = await make_use_case(repos).execute(task, entities)

        assert result.is_err()
        assert result.error.code == "DATA_QUALITY_ERROR"

    async def test_unexpected_exception_is_wrapped(self, repos, task, entities):
        repos["cost_repo"].get_for_month = AsyncMock(side_effect=Exception("Database connection lost"))

        result = await make_use_case(repos).execute(task, entities)

        assert result.is_err()
        assert result.error.code == "GENERATE_INVOICE_ROWS_FAILED"
        assert "Database connection lost" in result.error.reason


class TestProcessingOrder:
    """Test the deterministic line item order"""

    def test_orders_by_date_account_then_id(self):
        items = [
            line_item("c", "1", 2, account_id="111"),
            line_item("b", "1", 1, account_id="222"),
            line_item("a", "1", 1, account_id="222"),
            line_item("d", "1", 1, account_id="111"),
        ]

        ordered = sorted(items, key=processing_order)

        assert [item.id for item in ordered] == ["d", "a", "b", "c"]
