# tradesight/services/screenshot.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from tradesight.core.assembler import assemble
from tradesight.core.exceptions import ExtractionError, ValidationError
from tradesight.core.gemini_client import GenerativeModel, InlinePart, TextPart, detect_mime
from tradesight.core.json_extract import extract_json_object
from tradesight.core.prompts import table_prompt
from tradesight.core.retry import RetryScheduler, as_provider_error
from tradesight.schemas.extraction import ExtractedTradeRecord, ExtractionVariant
from tradesight.utils.logger import get_logger, log_execution_time

logger = get_logger(__name__)


class ScreenshotAnalyzer:
    """
    Screenshot -> model call (retried on rate limits) -> JSON recovery ->
    normalized ExtractedTradeRecord.

    Holds no per-call state; one instance can serve concurrent requests.
    """

    def __init__(self, model: GenerativeModel, retry: Optional[RetryScheduler] = None):
        self.model = model
        self.retry = retry or RetryScheduler()

    @log_execution_time(level="INFO")
    async def analyze(
        self,
        image_bytes: bytes,
        variant: ExtractionVariant = ExtractionVariant.FOREX,
        *,
        mime_type: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ExtractedTradeRecord:
        """
        Raises:
            ValidationError: empty upload
            TransientProviderError: still rate limited after the retry budget
            FatalProviderError: any other model failure
            ExtractionError: the response held no JSON object
        """
        if not image_bytes:
            raise ValidationError("Screenshot is empty")

        variant = ExtractionVariant(variant)
        parts = [
            TextPart(table_prompt(variant)),
            InlinePart(data=image_bytes, mime_type=mime_type or detect_mime(image_bytes)),
        ]

        try:
            text = await self.retry.run(
                lambda: self.model.generate(parts),
                name=f"{variant.value}-screenshot",
            )
        except Exception as e:
            logger.error(f"[Screenshot] {variant.value} analysis failed at the model call: {e}")
            raise as_provider_error(e) from e

        logger.debug(f"[Screenshot] raw model response: {text[:500]!r}")

        try:
            raw = extract_json_object(text)
        except ExtractionError:
            logger.warning(f"[Screenshot] {variant.value} response held no JSON object")
            raise

        return assemble(raw, variant, now=now)
