import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from signdesk.core.exceptions import APIClientError, APITimeoutError
from signdesk.core.llm_client import BaseLLMClient, GeminiClient, OpenAIClient


def ok_response(json_data):
    response = MagicMock()
    response.raise_for_status = MagicMock()
    response.json.return_value = json_data
    return response


def error_response(status_code, text="error"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.raise_for_status = MagicMock(
        side_effect=httpx.HTTPStatusError("error", request=MagicMock(), response=response)
    )
    return response


@pytest.mark.asyncio
async def test_call_api_returns_json():
    client = BaseLLMClient(api_key="key", base_url="https://llm.test/v1/chat")

    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = ok_response({"ok": True})
        result = await client.call_api(payload={"a": 1})

    assert result == {"ok": True}
    kwargs = mock_post.call_args.kwargs
    assert kwargs["headers"]["Authorization"] == "Bearer key"
    assert kwargs["json"] == {"a": 1}


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    client = BaseLLMClient(api_key="key", base_url="https://llm.test", max_retries=3, retry_delay=0)

    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = error_response(401, "invalid api key")
        with pytest.raises(APIClientError, match="401"):
            await client.call_api()

    assert mock_post.await_count == 1


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    client = BaseLLMClient(api_key="key", base_url="https://llm.test", max_retries=2, retry_delay=0)

    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.side_effect = [error_response(503), ok_response({"ok": True})]
        result = await client.call_api()

    assert result == {"ok": True}
    assert mock_post.await_count == 2


@pytest.mark.asyncio
async def test_single_attempt_by_default():
    client = BaseLLMClient(api_key="key", base_url="https://llm.test")

    with patch("httpx.AsyncClient.post") as mock_post:
        mock_post.return_value = error_response(500)
        with pytest.raises(APIClientError):
            await client.call_api()

    assert mock_post.await_count == 1


@pytest.mark.asyncio
async def test_timeout():
    client = BaseLLMClient(api_key="key", base_url="https://llm.test", timeout=5)

    with patch("httpx.AsyncClient.post", side_effect=httpx.ReadTimeout("slow")):
        with pytest.raises(APITimeoutError):
            await client.call_api()


@pytest.mark.asyncio
async def test_openai_chat_returns_first_choice():
    client = OpenAIClient(api_key="sk-test", model="gpt-4o")
    client.client.call_api = AsyncMock(
        return_value={"choices": [{"message": {"content": '{"a": 1}'}}]}
    )

    text = await client.chat([{"role": "user", "content": "hi"}])

    assert text == '{"a": 1}'
    payload = client.client.call_api.await_args.kwargs["payload"]
    assert payload["model"] == "gpt-4o"
    assert payload["temperature"] == 0.0


@pytest.mark.asyncio
async def test_openai_chat_without_choices():
    client = OpenAIClient(api_key="sk-test")
    client.client.call_api = AsyncMock(return_value={"error": {"message": "quota"}})

    with pytest.raises(APIClientError):
        await client.chat([])


@pytest.mark.asyncio
async def test_gemini_generate_content():
    with patch("signdesk.core.llm_client.genai.Client") as client_cls:
        generate = AsyncMock(return_value=MagicMock(text='{"a": 1}'))
        client_cls.return_value.aio.models.generate_content = generate
        client = GeminiClient(api_key="key", model="gemini-2.0-flash", timeout=30)

        text = await client.generate_content(["prompt"])

    assert text == '{"a": 1}'
    assert generate.await_args.kwargs["model"] == "gemini-2.0-flash"
    assert generate.await_args.kwargs["config"].temperature == 0.0
    assert client_cls.call_args.kwargs["http_options"].timeout == 30000


@pytest.mark.asyncio
async def test_gemini_errors_are_wrapped():
    with patch("signdesk.core.llm_client.genai.Client") as client_cls:
        client_cls.return_value.aio.models.generate_content = AsyncMock(side_effect=RuntimeError("quota"))
        client = GeminiClient(api_key="key")

        with pytest.raises(APIClientError, match="quota"):
            await client.generate_content(["prompt"])
