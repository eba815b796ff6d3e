"""SQLAlchemy implementation of BillingEntityRepository"""

from typing import List, Sequence
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.billing_entity_repository import BillingEntityRepository
from src.domain.billing_entity import BillingEntity, Bucket


class SqlAlchemyBillingEntityRepository(BillingEntityRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_customer_ids(self) -> List[str]:
        stmt = (
            select(BillingEntity.customer_id)
            .where(BillingEntity.active == True)  # noqa: E712
            .distinct()
            .order_by(BillingEntity.customer_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_by_customer(self, customer_id: str) -> List[BillingEntity]:
        stmt = (
            select(BillingEntity)
            .where(BillingEntity.customer_id == customer_id)
            .order_by(BillingEntity.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_buckets(self, entity_ids: Sequence[str]) -> List[Bucket]:
        if not entity_ids:
            return []

        stmt = select(Bucket).where(Bucket.entity_id.in_(list(entity_ids))).order_by(Bucket.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
