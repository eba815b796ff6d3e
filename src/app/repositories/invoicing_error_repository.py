from abc import ABC, abstractmethod
from datetime import date
from typing import List
from src.domain.invoicing_error import InvoicingError


class InvoicingErrorRepository(ABC):
    """Repository interface for per-product invoicing error records"""

    @abstractmethod
    async def create(self, error: InvoicingError) -> InvoicingError:
        pass

    @abstractmethod
    async def get_for_month(self, customer_id: str, invoice_month: date) -> List[InvoicingError]:
        pass
