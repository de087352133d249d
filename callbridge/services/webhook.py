import logging
from typing import Optional

import httpx

from callbridge.config.constants import LOGGER_NAME
from callbridge.models.openai_schemas import ExtractionResult

logger = logging.getLogger(LOGGER_NAME)


class WebhookSink:
    """POSTs extraction results to the configured webhook, once, without retry."""

    def __init__(self, url: Optional[str], timeout: float = 10.0):
        self.url = url
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.url)

    async def deliver(self, result: ExtractionResult, session_id: str = "") -> bool:
        """
        Send one result to the webhook.

        Returns:
            bool: True if the webhook answered with a 2xx status
        """
        if not self.url:
            logger.warning(f"No webhook URL configured, result for session {session_id} not delivered")
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=result.model_dump())
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery failed for session {session_id}: {e}")
            return False

        if resp.is_success:
            logger.info(f"Webhook delivered for session {session_id} (status {resp.status_code})")
            return True
        logger.error(
            f"Webhook rejected result for session {session_id} "
            f"(status {resp.status_code}): {resp.text[:200]}"
        )
        return False
