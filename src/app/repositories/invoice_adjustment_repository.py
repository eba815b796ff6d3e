from abc import ABC, abstractmethod
from datetime import date
from typing import List
from src.domain.invoice_adjustment import InvoiceAdjustment


class InvoiceAdjustmentRepository(ABC):
    """Repository interface for manual invoice adjustments"""

    @abstractmethod
    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[InvoiceAdjustment]:
        pass
