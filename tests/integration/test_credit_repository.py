"""Integration tests for SqlAlchemyCreditRepository

Tests cover:
- Version-checked write-back of credit mutations
- Detection of concurrent credit updates
- Month filtering of credits
"""

import pytest
from datetime import date
from decimal import Decimal

from sqlmodel.ext.asyncio.session import AsyncSession
from src.adapter.repositories.credit_repository import SqlAlchemyCreditRepository
from src.domain.credit import Credit
from src.domain.credit_ledger import CreditMutation
from src.domain.exceptions import CreditVersionConflictError


def make_credit(credit_id: str = "credit_1", **overrides) -> Credit:
    data = {
        "id": credit_id,
        "customer_id": "customer_123",
        "entity_id": "entity_1",
        "product_type": "amazon-web-services",
        "name": "Launch credit",
        "amount": Decimal("100"),
        "remaining": Decimal("100"),
        "start_date": date(2024, 1, 1),
        "end_date": date(2025, 1, 1),
    }
    data.update(overrides)
    return Credit(**data)


def make_mutation(version: int, remaining: str = "60") -> CreditMutation:
    return CreditMutation(
        credit_id="credit_1",
        version=version,
        remaining=Decimal(remaining),
        previous_remaining=Decimal("100"),
        utilization={"2024-03": {"111": Decimal("100") - Decimal(remaining)}},
    )


@pytest.mark.asyncio
class TestCreditRepositoryIntegration:
    """Integration tests with real database"""

    async def test_apply_mutations_bumps_version(self, db_session: AsyncSession):
        # Arrange
        db_session.add(make_credit())
        await db_session.commit()
        repo = SqlAlchemyCreditRepository(db_session)

        # Act
        updated = await repo.apply_mutations([make_mutation(version=1)])
        await db_session.commit()

        # Assert
        credit = await repo.get_by_id("credit_1")
        assert updated == 1
        assert credit.version == 2
        assert Decimal(credit.remaining) == Decimal("60")
        assert credit.utilization == {"2024-03": {"111": "40"}}

    async def test_stale_version_is_rejected(self, db_session: AsyncSession):
        """
        Given: A credit updated by someone else after it was read
        When: A mutation based on the old version is applied
        Then: CreditVersionConflictError is raised and nothing changes
        """
        # Arrange
        db_session.add(make_credit(version=2))
        await db_session.commit()
        repo = SqlAlchemyCreditRepository(db_session)

        # Act & Assert
        with pytest.raises(CreditVersionConflictError) as exc_info:
            await repo.apply_mutations([make_mutation(version=1)])
        await db_session.rollback()

        assert exc_info.value.credit_id == "credit_1"
        credit = await repo.get_by_id("credit_1")
        assert credit.version == 2
        assert Decimal(credit.remaining) == Decimal("100")

    async def test_get_for_month_excludes_expired_and_other_products(self, db_session: AsyncSession):
        # Arrange
        db_session.add_all([
            make_credit("active"),
            make_credit("expired", end_date=date(2024, 3, 1)),
            make_credit("open_ended", end_date=None),
            make_credit("gcp", product_type="google-cloud"),
        ])
        await db_session.commit()
        repo = SqlAlchemyCreditRepository(db_session)

        # Act
        credits = await repo.get_for_month("customer_123", "amazon-web-services", date(2024, 3, 1))

        # Assert
        assert sorted(credit.id for credit in credits) == ["active", "open_ended"]
