from abc import ABC, abstractmethod
from typing import List
from src.domain.contract_charge import ContractCharge


class ContractChargeRepository(ABC):
    """Repository interface for contract (PLPS) charges"""

    @abstractmethod
    async def get_by_customer(self, customer_id: str, product_type: str) -> List[ContractCharge]:
        """
        Retrieve all contract charges of a customer for one product type

        Inactive charges are included; interval selection filters them.
        """
        pass
