"""SQLAlchemy implementation of CreditRepository

Write-backs are conditional updates on the credit version so a concurrent
edit by the credit administration is detected instead of overwritten.
"""

import logging
from datetime import date, datetime
from typing import List, Optional, Sequence
from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.credit_repository import CreditRepository
from src.domain.billing_period import month_start
from src.domain.credit import Credit
from src.domain.credit_ledger import CreditMutation
from src.domain.exceptions import CreditVersionConflictError

logger = logging.getLogger(__name__)


class SqlAlchemyCreditRepository(CreditRepository):
    """
    SQLAlchemy implementation of CreditRepository

    Features:
    - Month filtering on end_date
    - Optimistic concurrency via version column
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[Credit]:
        stmt = (
            select(Credit)
            .where(
                Credit.customer_id == customer_id,
                Credit.product_type == product_type,
                (Credit.end_date.is_(None)) | (Credit.end_date > month_start(invoice_month)),
            )
            .order_by(Credit.end_date, Credit.id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_id(self, credit_id: str) -> Optional[Credit]:
        stmt = (
            select(Credit)
            .where(Credit.id == credit_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def apply_mutations(self, mutations: Sequence[CreditMutation]) -> int:
        updated = 0
        now = datetime.utcnow()

        for mutation in mutations:
            stmt = (
                update(Credit)
                .where(Credit.id == mutation.credit_id, Credit.version == mutation.version)
                .values(
                    remaining=mutation.remaining,
                    utilization=mutation.serialized_utilization(),
                    depletion_date=mutation.depletion_date,
                    version=mutation.version + 1,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            if result.rowcount != 1:
                raise CreditVersionConflictError(mutation.credit_id, mutation.version)
            updated += 1

        await self.session.flush()
        logger.debug(f"Wrote back {updated} credits")
        return updated
