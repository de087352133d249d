"""
Structured extraction of customer details from a finished call transcript.

One chat-completions request per call, constrained by a strict JSON schema so
the model can only answer with the three fields the webhook expects.
"""

import json
import logging
from typing import Any, Dict

import httpx
from pydantic import ValidationError

from callbridge.config.constants import DEFAULT_EXTRACTION_MODEL, DEFAULT_OPENAI_API_URL, LOGGER_NAME
from callbridge.models.openai_schemas import EXTRACTION_JSON_SCHEMA, ExtractionResult

logger = logging.getLogger(LOGGER_NAME)

EXTRACTION_INSTRUCTION = "Extract customer details: name, availability, and notes."
EXTRACTION_SCHEMA_NAME = "customer_details"


class ExtractionError(Exception):
    """The transcript could not be turned into an ExtractionResult."""


class TranscriptExtractor:
    """Client for the chat-completions endpoint used after each call."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_EXTRACTION_MODEL,
        api_url: str = DEFAULT_OPENAI_API_URL,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.model = model
        self.url = f"{api_url.rstrip('/')}/chat/completions"
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(self, transcript: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": EXTRACTION_INSTRUCTION},
                {"role": "user", "content": transcript},
            ],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": EXTRACTION_SCHEMA_NAME,
                    "strict": True,
                    "schema": EXTRACTION_JSON_SCHEMA,
                },
            },
        }

    async def extract(self, transcript: str) -> ExtractionResult:
        """
        Extract customer name, availability and special notes.

        Args:
            transcript: Full transcript text, one utterance per line

        Returns:
            ExtractionResult: The validated fields

        Raises:
            ExtractionError: If the request fails or the answer is not a valid result
        """
        if not self.api_key:
            raise ExtractionError("No OpenAI API key configured")

        logger.debug(f"Requesting extraction with model {self.model} ({len(transcript)} characters)")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, json=self.build_payload(transcript), headers=self._headers())
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise ExtractionError(
                f"Extraction request failed with status {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise ExtractionError(f"Extraction request failed: {e}") from e
        except ValueError as e:
            raise ExtractionError(f"Extraction response is not JSON: {e}") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError):
            content = None
        if not content:
            raise ExtractionError("No content in extraction response")

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ExtractionError(f"Extraction content is not valid JSON: {content[:100]}") from e

        try:
            return ExtractionResult.model_validate(data)
        except ValidationError as e:
            raise ExtractionError(f"Extraction content does not match the schema: {e}") from e
