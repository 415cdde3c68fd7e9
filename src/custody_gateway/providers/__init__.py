# Providers Module - External Capabilities
#
# One implementation per external service, behind the AIProvider and
# PaymentProvider protocols

from .base import (
    AIProvider,
    ChatCompletion,
    GeneratedImage,
    PaymentOrder,
    PaymentProvider,
    format_amount,
    redact,
)
from .openai_provider import OpenAIProvider
from .paypal_provider import PayPalProvider

__all__ = [
    "AIProvider",
    "ChatCompletion",
    "GeneratedImage",
    "OpenAIProvider",
    "PayPalProvider",
    "PaymentOrder",
    "PaymentProvider",
    "format_amount",
    "redact",
]
