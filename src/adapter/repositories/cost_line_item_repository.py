"""SQLAlchemy implementation of CostLineItemRepository"""

from datetime import date
from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.cost_line_item_repository import CostLineItemRepository
from src.domain.billing_period import month_start, next_month_start
from src.domain.cost_line_item import CostLineItem


class SqlAlchemyCostLineItemRepository(CostLineItemRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[CostLineItem]:
        stmt = (
            select(CostLineItem)
            .where(
                CostLineItem.customer_id == customer_id,
                CostLineItem.product_type == product_type,
                CostLineItem.usage_date >= month_start(invoice_month),
                CostLineItem.usage_date < next_month_start(invoice_month),
            )
            .order_by(
                CostLineItem.usage_date,
                CostLineItem.account_id,
                CostLineItem.cost_classification,
                CostLineItem.id,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
