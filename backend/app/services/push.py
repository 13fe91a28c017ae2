"""
Web Push delivery using VAPID.

pywebpush is synchronous, so each send runs in a worker thread. Push is
disabled (sends are skipped) until both VAPID keys are configured.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from pywebpush import WebPushException, webpush

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Push service status codes meaning the subscription will never work again
GONE_STATUS_CODES = (404, 410)


class PushEndpointGone(Exception):
    """The push service reports the subscription as permanently invalid."""

    def __init__(self, endpoint: str, status_code: int):
        super().__init__(f"Push endpoint gone ({status_code}): {endpoint[:60]}")
        self.endpoint = endpoint
        self.status_code = status_code


class WebPushSender:
    """Sends one push message to one browser subscription."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        if not self.enabled:
            logger.warning("VAPID keys not configured - web push notifications disabled")

    @property
    def enabled(self) -> bool:
        return self.settings.has_vapid_keys

    @property
    def public_key(self) -> Optional[str]:
        return self.settings.vapid_public_key

    async def send(
        self,
        subscription_json: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Deliver a notification to a stored subscription.

        Returns False when push is disabled. Raises PushEndpointGone when
        the subscription should be deleted; other failures propagate.
        """
        if not self.enabled:
            logger.debug(f"Web push disabled - skipping '{title}'")
            return False

        subscription = json.loads(subscription_json)
        payload = json.dumps({"title": title, "body": body, "data": data or {}})

        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription,
                data=payload,
                vapid_private_key=self.settings.vapid_private_key,
                vapid_claims={"sub": self.settings.vapid_subject},
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                raise PushEndpointGone(subscription.get("endpoint", ""), status_code) from e
            raise

        logger.info(f"Web push sent: {title}")
        return True
