"""SQLAlchemy implementation of InvoiceAdjustmentRepository"""

from datetime import date
from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoice_adjustment_repository import InvoiceAdjustmentRepository
from src.domain.billing_period import month_start
from src.domain.invoice_adjustment import InvoiceAdjustment


class SqlAlchemyInvoiceAdjustmentRepository(InvoiceAdjustmentRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[InvoiceAdjustment]:
        stmt = (
            select(InvoiceAdjustment)
            .where(
                InvoiceAdjustment.customer_id == customer_id,
                InvoiceAdjustment.product_type == product_type,
                InvoiceAdjustment.invoice_month == month_start(invoice_month),
            )
            .order_by(InvoiceAdjustment.created_at, InvoiceAdjustment.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
