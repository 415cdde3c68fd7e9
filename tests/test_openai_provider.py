"""
Tests for OpenAIProvider - chat and image calls with the caller's key.

The AsyncOpenAI client is patched out; tests check the arguments it is
built and called with, and how SDK errors are translated.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, AuthenticationError, PermissionDeniedError

from custody_gateway.exceptions import ProviderError
from custody_gateway.providers import OpenAIProvider


API_KEY = "sk-user-key-123"
CHAT_URL = "https://api.openai.com/v1/chat/completions"


def _mock_client():
    client = MagicMock()
    client.__aenter__.return_value = client
    client.__aexit__.return_value = False
    return client


def _chat_response(text="Hello!", model="gpt-3.5-turbo-0125"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        model=model,
    )


def _status_error(cls, status, message):
    request = httpx.Request("POST", CHAT_URL)
    return cls(message, response=httpx.Response(status, request=request), body=None)


# ===================================================================
# Chat
# ===================================================================


class TestCompleteChat:

    @pytest.mark.asyncio
    async def test_returns_completion(self):
        client = _mock_client()
        client.chat.completions.create = AsyncMock(return_value=_chat_response())

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client) as factory:
            completion = await OpenAIProvider().complete_chat(API_KEY, "hi there")

        assert completion.text == "Hello!"
        assert completion.model == "gpt-3.5-turbo-0125"
        factory.assert_called_once_with(api_key=API_KEY, max_retries=0)
        client.chat.completions.create.assert_awaited_once_with(
            model="gpt-3.5-turbo",
            messages=[{"role": "user", "content": "hi there"}],
        )

    @pytest.mark.asyncio
    async def test_client_is_closed_after_call(self):
        client = _mock_client()
        client.chat.completions.create = AsyncMock(return_value=_chat_response())

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client):
            await OpenAIProvider().complete_chat(API_KEY, "hi")

        client.__aexit__.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_timeout_passed_to_client(self):
        client = _mock_client()
        client.chat.completions.create = AsyncMock(return_value=_chat_response())

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client) as factory:
            await OpenAIProvider(chat_model="gpt-4o-mini", timeout=15.0).complete_chat(API_KEY, "hi")

        factory.assert_called_once_with(api_key=API_KEY, max_retries=0, timeout=15.0)
        assert client.chat.completions.create.await_args.kwargs["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_no_choices(self):
        client = _mock_client()
        client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[], model="m"))

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client):
            with pytest.raises(ProviderError, match="no choices"):
                await OpenAIProvider().complete_chat(API_KEY, "hi")


# ===================================================================
# Image
# ===================================================================


class TestGenerateImage:

    @pytest.mark.asyncio
    async def test_returns_url(self):
        client = _mock_client()
        client.images.generate = AsyncMock(return_value=SimpleNamespace(
            data=[SimpleNamespace(url="https://oaidalleapi/img.png", revised_prompt="a fluffy cat")]
        ))

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client):
            image = await OpenAIProvider().generate_image(API_KEY, "a cat")

        assert image.url == "https://oaidalleapi/img.png"
        assert image.model == "dall-e-3"
        assert image.revised_prompt == "a fluffy cat"
        client.images.generate.assert_awaited_once_with(
            model="dall-e-3", prompt="a cat", n=1, size="1024x1024",
        )

    @pytest.mark.asyncio
    async def test_missing_url(self):
        client = _mock_client()
        client.images.generate = AsyncMock(return_value=SimpleNamespace(data=[]))

        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client):
            with pytest.raises(ProviderError, match="no image URL"):
                await OpenAIProvider().generate_image(API_KEY, "a cat")


# ===================================================================
# Error mapping
# ===================================================================


class TestErrorMapping:

    async def _chat_raising(self, error):
        client = _mock_client()
        client.chat.completions.create = AsyncMock(side_effect=error)
        with patch("custody_gateway.providers.openai_provider.AsyncOpenAI", return_value=client):
            with pytest.raises(ProviderError) as exc_info:
                await OpenAIProvider().complete_chat(API_KEY, "hi")
        return exc_info.value

    @pytest.mark.asyncio
    async def test_authentication_error_is_credential_rejection(self):
        err = await self._chat_raising(
            _status_error(AuthenticationError, 401, f"Incorrect API key provided: {API_KEY}")
        )
        assert err.credential_rejected is True
        assert err.kind == "provider_credentials_rejected"
        assert err.upstream_status == 401
        assert API_KEY not in str(err)

    @pytest.mark.asyncio
    async def test_permission_denied_is_credential_rejection(self):
        err = await self._chat_raising(_status_error(PermissionDeniedError, 403, "forbidden"))
        assert err.credential_rejected is True

    @pytest.mark.asyncio
    async def test_server_error_is_outage_and_scrubbed(self):
        err = await self._chat_raising(
            _status_error(APIStatusError, 500, f"upstream failed for key {API_KEY}")
        )
        assert err.kind == "provider_unavailable"
        assert err.upstream_status == 500
        assert API_KEY not in str(err)
        assert "[redacted]" in str(err)

    @pytest.mark.asyncio
    async def test_connection_error_is_outage(self):
        err = await self._chat_raising(APIConnectionError(request=httpx.Request("POST", CHAT_URL)))
        assert err.kind == "provider_unavailable"
        assert err.upstream_status is None
        assert "Could not reach OpenAI" in str(err)
