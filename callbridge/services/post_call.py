"""
Post-call pipeline: transcript → extraction → webhook.

Each finished call hands its transcript text to ``PostCallPipeline.submit``,
which runs the two steps in a background task so the session can be torn down
immediately. Failures are logged and never reach the session; there is no
retry and nothing is persisted.
"""

import asyncio
import logging
from typing import Optional, Set

from callbridge.config.constants import LOGGER_NAME
from callbridge.config.settings import BridgeSettings
from callbridge.models.openai_schemas import ExtractionResult
from callbridge.services.extraction import ExtractionError, TranscriptExtractor
from callbridge.services.webhook import WebhookSink

logger = logging.getLogger(LOGGER_NAME)

DEFAULT_MAX_CONCURRENT = 4


class PostCallPipeline:
    def __init__(self, extractor: TranscriptExtractor, sink: WebhookSink,
                 max_concurrent: int = DEFAULT_MAX_CONCURRENT):
        self.extractor = extractor
        self.sink = sink
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: Set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: BridgeSettings) -> "PostCallPipeline":
        extractor = TranscriptExtractor(
            api_key=settings.openai_api_key or "",
            model=settings.extraction_model,
            api_url=settings.openai_api_url,
            timeout=settings.extraction_timeout,
        )
        sink = WebhookSink(settings.webhook_url, timeout=settings.webhook_timeout)
        return cls(extractor, sink)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def run(self, session_id: str, transcript: str) -> Optional[ExtractionResult]:
        """
        Process one transcript. Never raises.

        Returns:
            The extraction result, or None if extraction failed
        """
        if not transcript.strip():
            logger.info(f"Transcript for session {session_id} is empty")

        async with self._semaphore:
            logger.info(f"Processing transcript for session: {session_id}")
            try:
                result = await self.extractor.extract(transcript)
            except ExtractionError as e:
                logger.error(f"Extraction failed for session {session_id}: {e}")
                return None
            except Exception as e:
                logger.error(f"Unexpected extraction error for session {session_id}: {e}", exc_info=True)
                return None

            logger.info(f"Extracted details for session {session_id}: {result.model_dump_json()}")
            try:
                await self.sink.deliver(result, session_id)
            except Exception as e:
                logger.error(f"Unexpected webhook error for session {session_id}: {e}", exc_info=True)
            return result

    def submit(self, session_id: str, transcript: str) -> asyncio.Task:
        """Run the pipeline in the background and return its task."""
        task = asyncio.create_task(self.run(session_id, transcript))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait until every submitted transcript has been processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
