# tradesight/core/gemini_client.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Union

from google import genai
from google.genai import types

from tradesight.core.config import Settings, get_settings
from tradesight.core.exceptions import FatalProviderError
from tradesight.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlinePart:
    data: bytes
    mime_type: str


PromptPart = Union[TextPart, InlinePart]


class GenerativeModel(Protocol):
    """Anything that turns prompt parts into response text."""

    async def generate(self, parts: Sequence[PromptPart]) -> str:
        ...


def detect_mime(b: bytes) -> str:
    if len(b) >= 2 and b[0] == 0xFF and b[1] == 0xD8:
        return "image/jpeg"
    if len(b) >= 8 and b[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if len(b) >= 12 and b[:4] == b"RIFF" and b[8:12] == b"WEBP":
        return "image/webp"
    if len(b) >= 6 and b[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/jpeg"


class GeminiModel:
    """
    google-genai wrapper implementing GenerativeModel.

    Errors from the SDK (google.genai.errors.APIError) are passed through
    untouched so the retry layer can read their `code` / `status`.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        *,
        temperature: Optional[float] = None,
        max_output_tokens: Optional[int] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.api_key = api_key or settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.temperature = settings.ai_temperature if temperature is None else temperature
        self.max_output_tokens = max_output_tokens or settings.ai_max_output_tokens
        self._client: Optional[genai.Client] = None

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self.api_key:
                raise FatalProviderError("Gemini API key is not configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    @staticmethod
    def _to_sdk_parts(parts: Sequence[PromptPart]) -> List[types.Part]:
        sdk_parts: List[types.Part] = []
        for part in parts:
            if isinstance(part, InlinePart):
                sdk_parts.append(types.Part.from_bytes(data=part.data, mime_type=part.mime_type))
            else:
                sdk_parts.append(types.Part(text=part.text))
        return sdk_parts

    async def generate(self, parts: Sequence[PromptPart]) -> str:
        contents = [types.Content(role="user", parts=self._to_sdk_parts(parts))]
        resp = await self.client.aio.models.generate_content(
            model=self.model,
            contents=contents,
            config=types.GenerateContentConfig(
                temperature=self.temperature,
                max_output_tokens=self.max_output_tokens,
            ),
        )

        raw_text = getattr(resp, "text", None)
        if not raw_text and getattr(resp, "candidates", None):
            # salvage any text from candidates
            chunks = []
            for c in resp.candidates:
                content = getattr(c, "content", None)
                for p in getattr(content, "parts", None) or []:
                    if getattr(p, "text", None):
                        chunks.append(p.text)
            raw_text = "".join(chunks) if chunks else None

        logger.debug(f"[Gemini] {self.model} response: {(raw_text or '')[:500]!r}")
        return raw_text or ""


def get_generative_model(settings: Optional[Settings] = None) -> GenerativeModel:
    """Factory used by the API layer; tests override it with a fake."""
    return GeminiModel(settings=settings)
