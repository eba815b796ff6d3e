"""Billing Entity Repository Interface"""

from abc import ABC, abstractmethod
from typing import List, Sequence
from src.domain.billing_entity import BillingEntity, Bucket


class BillingEntityRepository(ABC):
    @abstractmethod
    async def get_customer_ids(self) -> List[str]:
        """
        Retrieve ids of all customers with at least one active billing entity

        Returns:
            Sorted list of customer ids
        """
        pass

    @abstractmethod
    async def get_by_customer(self, customer_id: str) -> List[BillingEntity]:
        """
        Retrieve all billing entities of a customer, active or not

        Args:
            customer_id: Customer identifier

        Returns:
            List of BillingEntity
        """
        pass

    @abstractmethod
    async def get_buckets(self, entity_ids: Sequence[str]) -> List[Bucket]:
        """
        Retrieve the buckets of several entities

        Args:
            entity_ids: Billing entity identifiers

        Returns:
            List of Bucket
        """
        pass
