"""SQLAlchemy implementation of ContractChargeRepository"""

from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.contract_charge_repository import ContractChargeRepository
from src.domain.contract_charge import ContractCharge


class SqlAlchemyContractChargeRepository(ContractChargeRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_customer(self, customer_id: str, product_type: str) -> List[ContractCharge]:
        stmt = (
            select(ContractCharge)
            .where(
                ContractCharge.customer_id == customer_id,
                ContractCharge.product_type == product_type,
            )
            .order_by(ContractCharge.start_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
