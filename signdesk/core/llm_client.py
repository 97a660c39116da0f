import asyncio
from typing import Any, Dict, List, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from signdesk.core.exceptions import APIClientError, APITimeoutError
from signdesk.utils.logging import get_logger
from google import genai
from google.genai import types

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """JSON-over-HTTP client for hosted model APIs.

    ``max_retries`` is the total number of attempts; the extraction
    workflow runs with one.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 1,
        retry_delay: int = 2
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.logger = LOGGER

    async def call_api(self, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST ``payload`` to ``base_url`` and return the decoded JSON body.

        Raises:
            APIClientError: On a rejected request, a server error on the last
                attempt, or an undecodable body
            APITimeoutError: If the last attempt times out
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        self.logger.debug(
            f"POST {self.base_url}",
            extra={"timeout": self.timeout, "attempts": self.max_retries}
        )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(self.max_retries):
                last_attempt = attempt == self.max_retries - 1
                try:
                    response = await client.post(self.base_url, headers=headers, json=payload)
                    response.raise_for_status()
                    return response.json()

                except HTTPStatusError as e:
                    status_code = e.response.status_code
                    body = e.response.text
                    self.logger.warning(
                        f"Model API returned {status_code} (attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url, "error_body": body[:500]}
                    )
                    # Rejected requests will not succeed on retry; rate limits might
                    if 400 <= status_code < 500 and status_code != 429:
                        raise APIClientError(f"API Client Error {status_code}: {body}") from e
                    if last_attempt:
                        raise APIClientError(f"API HTTP Error {status_code}: {body}") from e

                except TimeoutException as e:
                    self.logger.warning(
                        f"Model API timed out (attempt {attempt + 1}/{self.max_retries})",
                        extra={"url": self.base_url}
                    )
                    if last_attempt:
                        raise APITimeoutError(
                            f"API Timeout after {self.max_retries} attempt(s) ({self.timeout}s each)"
                        ) from e

                except (httpx.HTTPError, ValueError) as e:
                    self.logger.warning(
                        f"Model API call failed (attempt {attempt + 1}/{self.max_retries}): {e}",
                        extra={"url": self.base_url}
                    )
                    if last_attempt:
                        raise APIClientError(f"API Error: {str(e)}") from e

                await asyncio.sleep(self.retry_delay * (2 ** attempt))

        raise APIClientError(f"Failed to call API {self.base_url} after {self.max_retries} attempts")


class GeminiClient:
    """google-genai client bound to one model, deterministic output."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.0-flash",
        timeout: int = 120,
        max_retries: int = 1,
    ):
        """Create the SDK client.

        Args:
            api_key: Gemini API key
            model: Model name
            timeout: Per-request timeout in seconds
            max_retries: Total number of attempts

        Raises:
            APIClientError: If the SDK rejects the configuration
        """
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)

        try:
            self.client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout * 1000),
            )
        except Exception as e:
            LOGGER.error(f"Failed to initialize Gemini client: {e}")
            raise APIClientError(f"Failed to initialize Gemini client: {e}", original_error=e)
        LOGGER.info(f"Gemini client ready for {self.model}")

    async def generate_content(self, contents: List[Any]) -> str:
        """Run one generation over text and inline file parts.

        Returns:
            The response text, empty when the model produced none

        Raises:
            APIClientError: If the last attempt fails
        """
        config = types.GenerateContentConfig(temperature=0.0)

        for attempt in range(self.max_retries):
            try:
                response = await self.client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            except Exception as e:
                if attempt < self.max_retries - 1:
                    LOGGER.warning(f"Gemini attempt {attempt + 1}/{self.max_retries} failed: {e}")
                    await asyncio.sleep(2 ** attempt)
                    continue
                LOGGER.error(f"Gemini generation failed: {e}", exc_info=True)
                raise APIClientError(f"Gemini generation failed: {e}", original_error=e)

            if not response.text:
                LOGGER.warning("Empty response from Gemini")
                return ""
            return response.text

        raise APIClientError("Gemini generation failed")


class OpenAIClient:
    """Client for the OpenAI chat-completions API.

    Messages are sent as given, so callers can pass multimodal content
    arrays (text plus ``image_url`` parts).
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: int = 120,
        max_retries: int = 1,
    ):
        self.model = model
        self.client = BaseLLMClient(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries
        )
        LOGGER.info(f"OpenAI client ready for {self.model}")

    async def chat(self, messages: List[Dict[str, Any]]) -> str:
        """Run one chat completion and return the first choice's text.

        Raises:
            APIClientError: If the call fails or the response has no choices
        """
        response = await self.client.call_api(
            payload={"model": self.model, "messages": messages, "temperature": 0.0}
        )

        choices = response.get("choices") or []
        if not choices:
            LOGGER.error(f"Unexpected OpenAI response format: {str(response)[:500]}")
            raise APIClientError("Invalid response format from OpenAI")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty response from OpenAI")
        return content
