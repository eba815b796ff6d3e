"""Notification Service Implementations

Provides concrete implementations for sending notifications.
"""

import logging
from typing import Optional
import httpx
from src.app.services.notification_service import NotificationService
from src.domain.credit_ledger import CreditMutation
from src.domain.invoicing_error import InvoicingError

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    """
    Notification service that logs alerts

    Useful for development and testing, or as a fallback.
    """

    async def send_invoicing_error_alert(self, error: InvoicingError) -> bool:
        logger.warning(
            f"[INVOICING ERROR] Customer: {error.customer_id}, "
            f"Month: {error.invoice_month.isoformat()}, "
            f"Product: {error.product_type or '-'}, "
            f"Code: {error.code}, "
            f"Error: {error.error}"
        )
        return True

    async def send_credit_depleted_alert(self, customer_id: str, mutation: CreditMutation) -> bool:
        depleted_on = mutation.depletion_date.isoformat() if mutation.depletion_date else "-"
        logger.warning(
            f"[CREDIT DEPLETED] Customer: {customer_id}, "
            f"Credit: {mutation.credit_id}, "
            f"Depleted on: {depleted_on}"
        )
        return True


class WebhookNotificationService(NotificationService):
    """
    Notification service that sends alerts via HTTP webhook

    Sends JSON payload to configured webhook URL.
    """

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize webhook notification service

        Args:
            webhook_url: URL to POST alerts to
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send_invoicing_error_alert(self, error: InvoicingError) -> bool:
        payload = {
            "type": "invoicing_error",
            "error_id": error.id,
            "customer_id": error.customer_id,
            "invoice_month": error.invoice_month.isoformat(),
            "product_type": error.product_type,
            "code": error.code,
            "error": error.error,
            "timestamp": error.timestamp.isoformat(),
        }
        return await self._post(payload, f"invoicing error {error.id}")

    async def send_credit_depleted_alert(self, customer_id: str, mutation: CreditMutation) -> bool:
        payload = {
            "type": "credit_depleted",
            "customer_id": customer_id,
            "credit_id": mutation.credit_id,
            "previous_remaining": str(mutation.previous_remaining),
            "depletion_date": (
                mutation.depletion_date.isoformat() if mutation.depletion_date else None
            ),
        }
        return await self._post(payload, f"depleted credit {mutation.credit_id}")

    async def _post(self, payload: dict, subject: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.webhook_url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                logger.info(f"Webhook notification sent for {subject} to {self.webhook_url}")
                return True
        except httpx.HTTPError as e:
            logger.error(f"Failed to send webhook notification for {subject}: {e}")
            return False


class CompositeNotificationService(NotificationService):
    """
    Notification service that delegates to multiple services

    Useful for sending to multiple channels (e.g., log + webhook).
    """

    def __init__(self, services: list[NotificationService]):
        self.services = services

    async def send_invoicing_error_alert(self, error: InvoicingError) -> bool:
        results = [await service.send_invoicing_error_alert(error) for service in self.services]
        return any(results)

    async def send_credit_depleted_alert(self, customer_id: str, mutation: CreditMutation) -> bool:
        results = [
            await service.send_credit_depleted_alert(customer_id, mutation)
            for service in self.services
        ]
        return any(results)


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """
    Factory function to create appropriate notification service

    Args:
        webhook_url: Optional webhook URL. If provided, creates composite
                     service with logging + webhook. Otherwise, just logging.

    Returns:
        Configured NotificationService
    """
    services: list[NotificationService] = [LoggingNotificationService()]

    if webhook_url:
        services.append(WebhookNotificationService(webhook_url))

    if len(services) == 1:
        return services[0]

    return CompositeNotificationService(services)
