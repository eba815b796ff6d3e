"""SQLAlchemy implementation of InvoicingErrorRepository"""

from datetime import date
from typing import List
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoicing_error_repository import InvoicingErrorRepository
from src.domain.invoicing_error import InvoicingError


class SqlAlchemyInvoicingErrorRepository(InvoicingErrorRepository):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, error: InvoicingError) -> InvoicingError:
        self.session.add(error)
        await self.session.flush()
        return error

    async def get_for_month(self, customer_id: str, invoice_month: date) -> List[InvoicingError]:
        statement = (
            select(InvoicingError)
            .where(
                InvoicingError.customer_id == customer_id,
                InvoicingError.invoice_month == invoice_month,
            )
            .order_by(InvoicingError.timestamp)
        )
        result = await self.session.execute(statement)
        return list(result.scalars().all())
