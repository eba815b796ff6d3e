"""Invoice Repository Interface

Defines the contract for invoice persistence operations.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional, Sequence
from src.domain.invoice import Invoice
from src.domain.invoice_assembler import InvoiceChunk


class InvoiceRepository(ABC):
    """
    Repository interface for Invoice persistence

    Invoices are append-only; a newer run supersedes older documents.
    """

    @abstractmethod
    async def create_chunks(self, chunks: Sequence[InvoiceChunk]) -> List[Invoice]:
        """
        Persist invoice documents together with their rows

        Args:
            chunks: Invoice documents and their ordered rows

        Returns:
            Persisted invoices
        """
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> List[InvoiceChunk]:
        """
        Retrieve every chunk of a split invoice

        Args:
            group_id: Shared group identifier

        Returns:
            Chunks ordered by chunk_index, rows ordered by position
        """
        pass

    @abstractmethod
    async def get_for_month(
        self, customer_id: str, invoice_month: date, timestamp: Optional[datetime] = None
    ) -> List[Invoice]:
        """
        Retrieve a customer's invoices for a month

        Args:
            customer_id: Customer identifier
            invoice_month: First day of the invoiced month
            timestamp: Only invoices of the run with this timestamp

        Returns:
            Invoices ordered by timestamp (newest first)
        """
        pass
