"""Notification service HTTP client"""

import httpx
from charity_gateway.config import settings
from charity_gateway.domain.exceptions import NotificationDeliveryError
from charity_gateway.domain.models import Notification


class NotificationClient:
    """Client for the push/email notification delivery service"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.notification_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def send(self, notification: Notification) -> bool:
        """
        Deliver one notification.

        Single attempt, no retries: delivery is a side effect and the caller
        never waits on a retry loop.

        Raises:
            NotificationDeliveryError: On timeout, HTTP errors, or network failures
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/notifications",
                    json={
                        "recipient_id": notification.recipient_id,
                        "type": notification.kind.value,
                        "title": notification.title,
                        "message": notification.message,
                        "data": notification.data,
                    },
                )
                response.raise_for_status()
                return True

            except httpx.TimeoutException as e:
                raise NotificationDeliveryError(f"Notification service timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise NotificationDeliveryError(f"Notification service error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise NotificationDeliveryError(f"Notification service unreachable: {e}") from e
