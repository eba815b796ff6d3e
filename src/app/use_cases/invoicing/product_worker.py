"""Product Worker Interface

A product worker produces one product type's ProductInvoiceRows for a
customer task. Each worker owns its data access (its own session), so
workers never share mutable state.
"""

from abc import ABC, abstractmethod
from typing import Dict
from src.domain.billing_entity import BillingEntity
from src.domain.product import ProductType
from .dtos import CustomerInvoicingTaskDTO, ProductInvoiceRows


class ProductWorker(ABC):
    product_type: ProductType

    @abstractmethod
    async def run(
        self, task: CustomerInvoicingTaskDTO, entities: Dict[str, BillingEntity]
    ) -> ProductInvoiceRows:
        """
        Produce rows (or an error result) for one product type

        Args:
            task: Customer invoicing task
            entities: Customer billing entities by id (read only)

        Returns:
            ProductInvoiceRows; failures are returned, not raised
        """
        pass
