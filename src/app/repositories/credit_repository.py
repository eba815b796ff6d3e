"""Credit Repository Interface

Defines the contract for reading credits and writing back invoicing run
mutations.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Sequence
from src.domain.credit import Credit
from src.domain.credit_ledger import CreditMutation


class CreditRepository(ABC):
    """
    Repository interface for Credit persistence

    Write-backs are guarded by the credit version read at load time.
    """

    @abstractmethod
    async def get_for_month(
        self, customer_id: str, product_type: str, invoice_month: date
    ) -> List[Credit]:
        """
        Retrieve credits of a customer and product type still active in a month

        Args:
            customer_id: Customer identifier
            product_type: Product type value (e.g., 'google-cloud')
            invoice_month: First day of the invoiced month

        Returns:
            Credits whose end date is after the start of invoice_month
        """
        pass

    @abstractmethod
    async def get_by_id(self, credit_id: str) -> Optional[Credit]:
        pass

    @abstractmethod
    async def apply_mutations(self, mutations: Sequence[CreditMutation]) -> int:
        """
        Write back remaining, utilization and depletion date of touched credits

        Args:
            mutations: Mutations returned by the product workers

        Returns:
            Number of credits updated

        Raises:
            CreditVersionConflictError: A credit changed since it was read
        """
        pass
