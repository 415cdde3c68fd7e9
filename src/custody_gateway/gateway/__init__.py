# Gateway Module - Credentialed Provider Calls

from .provider_gateway import (
    CallStage,
    ChatResult,
    CredentialsStored,
    ImageResult,
    PaymentResult,
    ProviderGateway,
    parse_amount,
)

__all__ = [
    "CallStage",
    "ChatResult",
    "CredentialsStored",
    "ImageResult",
    "PaymentResult",
    "ProviderGateway",
    "parse_amount",
]
