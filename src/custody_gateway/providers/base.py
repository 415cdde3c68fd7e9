# Providers - Capability Interfaces
#
# The gateway talks to external services only through these protocols.
# Implementations receive decrypted credentials as arguments, build a
# client scoped to that one call, and drop it when the call returns.

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Protocol


@dataclass(frozen=True)
class ChatCompletion:
    text: str
    model: str = ""


@dataclass(frozen=True)
class GeneratedImage:
    url: str
    model: str = ""
    revised_prompt: Optional[str] = None


@dataclass(frozen=True)
class PaymentOrder:
    order_id: str
    status: str = ""
    approve_url: Optional[str] = None


class AIProvider(Protocol):
    """Chat completion and image generation with the user's own API key."""

    name: str

    async def complete_chat(self, api_key: str, prompt: str) -> ChatCompletion:
        ...

    async def generate_image(self, api_key: str, prompt: str) -> GeneratedImage:
        ...


class PaymentProvider(Protocol):
    """Order creation with the user's own client credentials."""

    name: str

    async def create_order(
        self,
        client_id: str,
        client_secret: str,
        amount: Decimal,
        currency: str,
    ) -> PaymentOrder:
        ...


def format_amount(amount: Decimal) -> str:
    """Plain decimal string with two places, as payment APIs expect."""
    return f"{amount.quantize(Decimal('0.01')):f}"


REDACTED = "[redacted]"


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every occurrence of each secret in ``text``."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text
