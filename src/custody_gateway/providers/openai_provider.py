# Providers - OpenAI
#
# Chat completion and image generation using the caller's own API key.
# A fresh AsyncOpenAI client is created for every call and closed when the
# call returns; the SDK's built-in retries are disabled so each inbound
# request reaches the provider exactly once.

import logging
from typing import Optional

from openai import (
    APIConnectionError,
    APIStatusError,
    AsyncOpenAI,
    AuthenticationError,
    OpenAIError,
    PermissionDeniedError,
)

from ..config import DEFAULT_CHAT_MODEL, DEFAULT_IMAGE_MODEL, DEFAULT_IMAGE_SIZE
from ..exceptions import ProviderError
from .base import ChatCompletion, GeneratedImage, redact

logger = logging.getLogger(__name__)


class OpenAIProvider:
    """AIProvider backed by the OpenAI API.

    Usage::

        provider = OpenAIProvider(chat_model="gpt-4o-mini")
        completion = await provider.complete_chat(api_key, "Hello")
        print(completion.text)
    """

    name = "openai"

    def __init__(
        self,
        chat_model: str = DEFAULT_CHAT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        image_size: str = DEFAULT_IMAGE_SIZE,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.chat_model = chat_model
        self.image_model = image_model
        self.image_size = image_size
        self._base_url = base_url
        self._timeout = timeout

    def _client(self, api_key: str) -> AsyncOpenAI:
        kwargs = {"api_key": api_key, "max_retries": 0}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        if self._timeout:
            kwargs["timeout"] = self._timeout
        return AsyncOpenAI(**kwargs)

    async def complete_chat(self, api_key: str, prompt: str) -> ChatCompletion:
        async with self._client(api_key) as client:
            try:
                response = await client.chat.completions.create(
                    model=self.chat_model,
                    messages=[{"role": "user", "content": prompt}],
                )
            except OpenAIError as exc:
                raise self._map_error(exc, api_key) from None

        if not response.choices:
            raise ProviderError("OpenAI returned no choices", provider=self.name)
        text = response.choices[0].message.content or ""
        return ChatCompletion(text=text, model=response.model or self.chat_model)

    async def generate_image(self, api_key: str, prompt: str) -> GeneratedImage:
        async with self._client(api_key) as client:
            try:
                response = await client.images.generate(
                    model=self.image_model,
                    prompt=prompt,
                    n=1,
                    size=self.image_size,
                )
            except OpenAIError as exc:
                raise self._map_error(exc, api_key) from None

        if not response.data or not response.data[0].url:
            raise ProviderError("OpenAI returned no image URL", provider=self.name)
        image = response.data[0]
        return GeneratedImage(
            url=image.url,
            model=self.image_model,
            revised_prompt=getattr(image, "revised_prompt", None),
        )

    def _map_error(self, exc: OpenAIError, api_key: str) -> ProviderError:
        """Translate an SDK error, scrubbing the key from its message."""
        status = getattr(exc, "status_code", None)
        rejected = isinstance(exc, (AuthenticationError, PermissionDeniedError))

        if rejected:
            message = "OpenAI rejected the stored API key"
        elif isinstance(exc, APIConnectionError):
            message = "Could not reach OpenAI"
        elif isinstance(exc, APIStatusError):
            message = f"OpenAI request failed ({status})"
        else:
            message = "OpenAI request failed"

        detail = redact(str(exc), [api_key])
        logger.debug("OpenAI error (status=%s): %s", status, detail)
        return ProviderError(
            f"{message}: {detail}" if detail and not rejected else message,
            provider=self.name,
            credential_rejected=rejected,
            upstream_status=status,
        )
