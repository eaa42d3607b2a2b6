"""
pulsewatch/services/notification.py

Push notification gateways used by the decision manager.
- LoggingNotificationGateway: logs the notification and reports success
- WebhookNotificationGateway: posts the notification to an HTTP endpoint

Every gateway delivers exactly one NotificationResult per post() call and
never raises for transport problems.
"""

from typing import Optional, Protocol

import httpx
import structlog

from pulsewatch.schemas import NotificationResult

logger = structlog.get_logger(__name__)


class NotificationGateway(Protocol):
    async def post(self, title: str, body: str) -> NotificationResult: ...


class LoggingNotificationGateway:
    """
    Gateway that only logs the notification.

    Used when no push transport is configured.
    """

    async def post(self, title: str, body: str) -> NotificationResult:
        logger.info(
            "push_notification_sent",
            title=title,
            message_length=len(body),
        )
        return NotificationResult.success()


class WebhookNotificationGateway:
    """Gateway that delivers notifications as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def post(self, title: str, body: str) -> NotificationResult:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.url,
                    json={"title": title, "body": body},
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("push_notification_timeout", url=self.url)
            return NotificationResult.failure("timeout")
        except httpx.HTTPStatusError as exc:
            logger.error(
                "push_notification_http_error",
                url=self.url,
                status=exc.response.status_code,
            )
            return NotificationResult.failure(f"http {exc.response.status_code}")
        except httpx.HTTPError as exc:
            logger.error(
                "push_notification_transport_error",
                url=self.url,
                error=str(exc),
            )
            return NotificationResult.failure(str(exc))

        logger.info("push_notification_sent", url=self.url, title=title)
        return NotificationResult.success()


def build_gateway(settings) -> NotificationGateway:
    """Pick the webhook gateway if a URL is configured, otherwise log only."""
    if settings.notification_webhook_url:
        return WebhookNotificationGateway(
            settings.notification_webhook_url,
            timeout=settings.notification_timeout_seconds,
        )
    return LoggingNotificationGateway()
