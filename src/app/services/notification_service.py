"""Notification Service Interface

Defines the contract for alerting operators about invoicing problems.
"""

from abc import ABC, abstractmethod
from src.domain.credit_ledger import CreditMutation
from src.domain.invoicing_error import InvoicingError


class NotificationService(ABC):
    """
    Abstract notification service for sending alerts

    Implementations can send notifications via:
    - Webhook (HTTP POST)
    - Logging
    """

    @abstractmethod
    async def send_invoicing_error_alert(self, error: InvoicingError) -> bool:
        """
        Send alert for a failed product worker or rejected invoice

        Args:
            error: Persisted InvoicingError

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass

    @abstractmethod
    async def send_credit_depleted_alert(self, customer_id: str, mutation: CreditMutation) -> bool:
        """
        Send alert for a credit that reached zero during this run

        Args:
            customer_id: Owning customer
            mutation: Written-back credit mutation

        Returns:
            True if notification sent successfully, False otherwise
        """
        pass
