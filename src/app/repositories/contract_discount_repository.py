from abc import ABC, abstractmethod
from typing import List
from src.domain.contract_discount import ContractDiscount


class ContractDiscountRepository(ABC):
    """Repository interface for contract usage discounts"""

    @abstractmethod
    async def get_by_customer(self, customer_id: str, product_type: str) -> List[ContractDiscount]:
        """Retrieve all contract discounts of a customer for one product type"""
        pass
