"""
Process-wide context for the custody gateway.

Built once at startup, before any request is served, and shared read-only
by all requests. Holds the master key (inside the credential store), the
two persistence components, the provider implementations and the gateway
that orchestrates them.
"""

from dataclasses import dataclass
from typing import Optional

from .config import Settings
from .core import EventLogger, configure_event_logger
from .gateway import ProviderGateway
from .ledger import CaseLedger
from .providers import AIProvider, OpenAIProvider, PaymentProvider, PayPalProvider
from .vault import CredentialStore


@dataclass(frozen=True)
class CustodyContext:
    settings: Settings
    events: EventLogger
    store: CredentialStore
    ledger: CaseLedger
    gateway: ProviderGateway

    def close(self) -> None:
        """Release file handles held by the event logger."""
        self.events.close()


def build_context(
    settings: Settings,
    *,
    ai_provider: Optional[AIProvider] = None,
    payment_provider: Optional[PaymentProvider] = None,
    ledger: Optional[CaseLedger] = None,
) -> CustodyContext:
    """
    Construct every component from ``settings``.

    Args:
        settings: Loaded process settings
        ai_provider: Substitute AI provider (default: OpenAIProvider)
        payment_provider: Substitute payment provider (default: PayPalProvider)
        ledger: Substitute case ledger (default: CaseLedger on the same database)

    Raises:
        PersistenceError: If the database cannot be initialized
    """
    events = configure_event_logger(settings.log_dir)
    store = CredentialStore(settings.database_path, settings.master_key)
    ledger = ledger or CaseLedger(settings.database_path)

    if ai_provider is None:
        ai_provider = OpenAIProvider(
            chat_model=settings.chat_model,
            image_model=settings.image_model,
            image_size=settings.image_size,
            timeout=settings.provider_timeout,
        )
    if payment_provider is None:
        payment_provider = PayPalProvider(
            base_url=settings.paypal_base_url,
            timeout=settings.provider_timeout,
        )

    gateway = ProviderGateway(
        store,
        ledger,
        ai_provider,
        payment_provider,
        timeout=settings.provider_timeout,
        payment_currency=settings.payment_currency,
        events=events,
    )
    return CustodyContext(
        settings=settings,
        events=events,
        store=store,
        ledger=ledger,
        gateway=gateway,
    )
