"""SQLAlchemy implementation of ContractDiscountRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.contract_discount_repository import ContractDiscountRepository
from src.domain.contract_discount import ContractDiscount


class SqlAlchemyContractDiscountRepository(ContractDiscountRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_customer(self, customer_id: str, product_type: str) -> List[ContractDiscount]:
        stmt = (
            select(ContractDiscount)
            .where(
                ContractDiscount.customer_id == customer_id,
                ContractDiscount.product_type == product_type,
            )
            .order_by(ContractDiscount.start_date, ContractDiscount.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
