"""Provider adapters behind a single text-in, text-out vision interface."""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from google.genai import types

from signdesk.core.config import settings
from signdesk.core.exceptions import APIClientError, ProviderConfigurationError, VisionServiceError
from signdesk.core.llm_client import GeminiClient, OpenAIClient
from signdesk.utils.logging import get_logger

LOGGER = get_logger(__name__)

SUPPORTED_PROVIDERS = ("gemini", "openai")


@dataclass
class VisionPart:
    """One inline file payload."""
    mime_type: str
    data: bytes
    name: str = ""


class VisionModelClient(ABC):
    """Sends a prompt plus inline files to a multimodal model.

    Every failure (transport, non-2xx, empty output) surfaces as
    ``VisionServiceError``.
    """

    provider: str = ""
    supports_pdf: bool = False

    def __init__(self, model: str):
        self.model = model

    async def extract(self, prompt: str, parts: Sequence[VisionPart]) -> str:
        """Return the model's raw text for ``prompt`` and ``parts``."""
        LOGGER.info(
            f"Calling {self.provider} model {self.model}",
            extra={"parts": len(parts), "provider": self.provider},
        )
        try:
            text = await self._generate(prompt, parts)
        except APIClientError as e:
            LOGGER.error(
                f"{self.provider} request failed: {e}",
                extra={"provider": self.provider, "model": self.model},
            )
            raise VisionServiceError(details=str(e), original_error=e)

        if not text or not text.strip():
            LOGGER.error(f"{self.provider} returned an empty response")
            raise VisionServiceError(details=f"Empty response from {self.provider}")
        return text

    @abstractmethod
    async def _generate(self, prompt: str, parts: Sequence[VisionPart]) -> str:
        pass


class GeminiVisionClient(VisionModelClient):
    """Gemini adapter with native PDF and image understanding."""

    provider = "gemini"
    supports_pdf = True

    def __init__(self, client: GeminiClient):
        super().__init__(client.model)
        self.client = client

    async def _generate(self, prompt: str, parts: Sequence[VisionPart]) -> str:
        contents: List[Any] = [prompt]
        contents.extend(
            types.Part.from_bytes(data=part.data, mime_type=part.mime_type) for part in parts
        )
        return await self.client.generate_content(contents)


class OpenAIVisionClient(VisionModelClient):
    """OpenAI chat-completions adapter.

    Only images are sent, as base64 data URLs. PDFs cannot be inspected
    through this path.
    """

    provider = "openai"
    supports_pdf = False

    def __init__(self, client: OpenAIClient):
        super().__init__(client.model)
        self.client = client

    @staticmethod
    def build_messages(prompt: str, parts: Sequence[VisionPart]) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": prompt}]
        for part in parts:
            encoded = base64.b64encode(part.data).decode("ascii")
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:{part.mime_type};base64,{encoded}", "detail": "high"},
            })
        return [{"role": "user", "content": content}]

    async def _generate(self, prompt: str, parts: Sequence[VisionPart]) -> str:
        return await self.client.chat(self.build_messages(prompt, parts))


def create_vision_client(provider: Optional[str] = None) -> VisionModelClient:
    """Build the adapter for ``provider`` (defaults to ``LLM_PROVIDER``).

    Raises:
        ProviderConfigurationError: If the provider is unknown or has no API key
    """
    provider = (provider or settings.llm_provider).lower()
    llm = settings.llm

    if provider == "gemini":
        if not llm.gemini_api_key:
            raise ProviderConfigurationError(details="GEMINI_API_KEY is not set")
        try:
            client = GeminiClient(
                api_key=llm.gemini_api_key,
                model=llm.gemini_model,
                timeout=llm.timeout_seconds,
                max_retries=llm.max_attempts,
            )
        except APIClientError as e:
            raise ProviderConfigurationError(details=str(e), original_error=e)
        return GeminiVisionClient(client)

    if provider == "openai":
        if not llm.openai_api_key:
            raise ProviderConfigurationError(details="OPENAI_API_KEY is not set")
        return OpenAIVisionClient(
            OpenAIClient(
                api_key=llm.openai_api_key,
                model=llm.openai_model,
                base_url=llm.openai_api_url,
                timeout=llm.timeout_seconds,
                max_retries=llm.max_attempts,
            )
        )

    raise ProviderConfigurationError(details=f"Unsupported AI provider: {provider}")
