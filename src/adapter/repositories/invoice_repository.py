"""SQLAlchemy Invoice Repository Implementation

Implements invoice persistence using SQLAlchemy async session.
"""

from collections import defaultdict
from datetime import date, datetime
from typing import List, Optional, Sequence
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from src.app.repositories.invoice_repository import InvoiceRepository
from src.domain.invoice import Invoice
from src.domain.invoice_assembler import InvoiceChunk
from src.domain.invoice_row import InvoiceRow


class SqlAlchemyInvoiceRepository(InvoiceRepository):
    """
    SQLAlchemy implementation of InvoiceRepository

    Uses async session for database operations.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_chunks(self, chunks: Sequence[InvoiceChunk]) -> List[Invoice]:
        """
        Persist invoices and rows in the current transaction

        Rows must already carry invoice_id and position (see chunk_invoice).
        """
        invoices = []
        for chunk in chunks:
            self.session.add(chunk.invoice)
            for row in chunk.rows:
                self.session.add(row)
            invoices.append(chunk.invoice)

        await self.session.flush()
        return invoices

    async def get_group(self, group_id: str) -> List[InvoiceChunk]:
        statement = (
            select(Invoice)
            .where(Invoice.group_id == group_id)
            .order_by(Invoice.chunk_index)
        )
        result = await self.session.execute(statement)
        invoices = list(result.scalars().all())
        if not invoices:
            return []

        statement = (
            select(InvoiceRow)
            .where(InvoiceRow.invoice_id.in_([invoice.id for invoice in invoices]))
            .order_by(InvoiceRow.position)
        )
        result = await self.session.execute(statement)

        rows_by_invoice = defaultdict(list)
        for row in result.scalars().all():
            rows_by_invoice[row.invoice_id].append(row)

        return [InvoiceChunk(invoice, rows_by_invoice[invoice.id]) for invoice in invoices]

    async def get_for_month(
        self, customer_id: str, invoice_month: date, timestamp: Optional[datetime] = None
    ) -> List[Invoice]:
        statement = select(Invoice).where(
            Invoice.customer_id == customer_id,
            Invoice.invoice_month == invoice_month,
        )

        if timestamp is not None:
            statement = statement.where(Invoice.timestamp == timestamp)

        statement = statement.order_by(
            Invoice.timestamp.desc(), Invoice.invoice_key, Invoice.chunk_index
        )

        result = await self.session.execute(statement)
        return list(result.scalars().all())
