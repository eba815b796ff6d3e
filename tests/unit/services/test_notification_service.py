"""Unit tests for notification service implementations"""

import httpx
import pytest
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from src.adapter.services.notification_service import (
    CompositeNotificationService,
    LoggingNotificationService,
    WebhookNotificationService,
    create_notification_service,
)
from src.domain.credit_ledger import CreditMutation
from src.domain.invoicing_error import InvoicingError


@pytest.fixture
def invoicing_error():
    return InvoicingError(
        id="err_1",
        customer_id="customer_123",
        invoice_month=date(2024, 3, 1),
        product_type="google-cloud",
        code="CONFIGURATION_ERROR",
        error="account project-x has no assigned billing entity",
        timestamp=datetime(2024, 4, 3, 6, 0),
    )


@pytest.fixture
def depleted_mutation():
    return CreditMutation(
        credit_id="credit_1",
        version=3,
        remaining=Decimal("0"),
        previous_remaining=Decimal("25"),
        utilization={},
        depletion_date=date(2024, 3, 12),
    )


def mock_client(post):
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    client.post = post
    return client


@pytest.mark.asyncio
class TestWebhookNotificationService:
    """Test webhook delivery"""

    async def test_posts_invoicing_error_payload(self, invoicing_error):
        # Arrange
        response = MagicMock()
        response.raise_for_status = MagicMock()
        post = AsyncMock(return_value=response)
        service = WebhookNotificationService("https://hooks.example.com/invoicing")

        # Act
        with patch("src.adapter.services.notification_service.httpx.AsyncClient", return_value=mock_client(post)):
            sent = await service.send_invoicing_error_alert(invoicing_error)

        # Assert
        assert sent is True
        payload = post.call_args.kwargs["json"]
        assert payload["type"] == "invoicing_error"
        assert payload["product_type"] == "google-cloud"
        assert payload["invoice_month"] == "2024-03-01"

    async def test_http_failure_returns_false(self, depleted_mutation):
        """
        Given: The webhook endpoint is unreachable
        When: A depletion alert is sent
        Then: The failure is logged and False returned
        """
        # Arrange
        post = AsyncMock(side_effect=httpx.ConnectError("connection refused"))
        service = WebhookNotificationService("https://hooks.example.com/invoicing")

        # Act
        with patch("src.adapter.services.notification_service.httpx.AsyncClient", return_value=mock_client(post)):
            sent = await service.send_credit_depleted_alert("customer_123", depleted_mutation)

        # Assert
        assert sent is False


@pytest.mark.asyncio
class TestCompositeNotificationService:
    """Test fan-out to several channels"""

    async def test_succeeds_when_any_channel_succeeds(self, depleted_mutation):
        failing = MagicMock()
        failing.send_credit_depleted_alert = AsyncMock(return_value=False)
        service = CompositeNotificationService([failing, LoggingNotificationService()])

        sent = await service.send_credit_depleted_alert("customer_123", depleted_mutation)

        assert sent is True
        failing.send_credit_depleted_alert.assert_called_once()


class TestCreateNotificationService:
    """Test factory"""

    def test_logging_only_without_webhook(self):
        assert isinstance(create_notification_service(None), LoggingNotificationService)

    def test_composite_with_webhook(self):
        service = create_notification_service("https://hooks.example.com/invoicing")

        assert isinstance(service, CompositeNotificationService)
        assert isinstance(service.services[1], WebhookNotificationService)
