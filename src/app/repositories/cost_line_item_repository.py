"""Cost Line Item Repository Interface

Read access to the analytics warehouse projection of daily costs.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List
from src.domain.cost_line_item import CostLineItem


class CostLineItemRepository(ABC):
    @abstractmethod
    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[CostLineItem]:
        """
        Retrieve the month's cost line items ordered by date and account

        Args:
            customer_id: Customer identifier
            product_type: Product type value
            invoice_month: First day of the invoiced month

        Returns:
            Cost line items dated within invoice_month
        """
        pass
