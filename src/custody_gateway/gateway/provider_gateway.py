# Gateway - Credentialed Provider Calls
#
# For each inbound action: load the user's sealed bundle, open exactly the
# slots the capability needs, hand them to the provider for one call under
# a time bound, then append a case record describing the outcome.
#
# Stages per request:
#   IDLE → CREDENTIALS_LOADED → AUTHENTICATED → CALL_IN_FLIGHT → SUCCEEDED | FAILED
#
# Audit policy:
#   - Requests rejected before the call (validation, missing credentials,
#     undecryptable credentials) record nothing and never reach a provider.
#   - Every request that reaches CALL_IN_FLIGHT is recorded, with
#     outcome="failed" and the error kind when the provider call fails.
#   - A ledger write failure is logged as a critical event and never
#     replaces the result or error returned to the caller.
#
# Decrypted secrets live only inside _call() and are never logged.

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Awaitable, Callable, List, Mapping, Optional, Sequence, Union

from ..core import EventLogger, EventSeverity, EventType, get_event_logger
from ..exceptions import (
    CredentialsNotFound,
    DecryptionError,
    ProviderError,
    ProviderTimeout,
    ValidationError,
)
from ..ledger import (
    CaseDetails,
    CaseLedger,
    CaseRecord,
    ChatDetails,
    ImageDetails,
    KeyUpdateDetails,
    Outcome,
    PaymentDetails,
)
from ..providers import AIProvider, PaymentProvider, format_amount
from ..vault import (
    SLOT_AI_API_KEY,
    SLOT_PAYMENT_CLIENT_ID,
    SLOT_PAYMENT_SECRET,
    CredentialBundle,
    CredentialStore,
)

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class CallStage(str, Enum):
    IDLE = "idle"
    CREDENTIALS_LOADED = "credentials_loaded"
    AUTHENTICATED = "authenticated"
    CALL_IN_FLIGHT = "call_in_flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# ── Normalized results ────────────────────────────────────────────────


@dataclass(frozen=True)
class CredentialsStored:
    user_id: str
    slots: List[str]
    case_id: Optional[str]


@dataclass(frozen=True)
class ChatResult:
    response: str
    model: str
    case_id: Optional[str]


@dataclass(frozen=True)
class ImageResult:
    image_url: str
    model: str
    case_id: Optional[str]
    revised_prompt: Optional[str] = None


@dataclass(frozen=True)
class PaymentResult:
    order_id: str
    status: str
    amount: str
    currency: str
    case_id: Optional[str]
    approve_url: Optional[str] = None


# ── Gateway ───────────────────────────────────────────────────────────


class ProviderGateway:
    """Orchestrates credential store, providers and case ledger.

    Holds no per-request state; one instance serves all concurrent requests.
    """

    def __init__(
        self,
        store: CredentialStore,
        ledger: CaseLedger,
        ai_provider: AIProvider,
        payment_provider: PaymentProvider,
        *,
        timeout: float = 60.0,
        payment_currency: str = "USD",
        events: Optional[EventLogger] = None,
    ):
        self._store = store
        self._ledger = ledger
        self._ai = ai_provider
        self._payments = payment_provider
        self._timeout = timeout
        self._currency = payment_currency
        self._events = events

    @property
    def events(self) -> EventLogger:
        return self._events or get_event_logger()

    # ------------------------------------------------------------------
    # Credentials & cases
    # ------------------------------------------------------------------

    async def store_credentials(self, user_id: str, secrets: Mapping[str, str]) -> CredentialsStored:
        """Encrypt and store the user's bundle, then record a key-update case."""
        _require("userId", user_id)
        bundle = await asyncio.to_thread(self._store.upsert, user_id, dict(secrets))

        self.events.log_event(
            EventType.CREDENTIALS_STORED,
            EventSeverity.INFO,
            "Credential bundle stored",
            details={"user_id": user_id, "slots": bundle.slot_names},
        )
        case_id = await self._record(user_id, KeyUpdateDetails(slots=bundle.slot_names))
        return CredentialsStored(user_id=user_id, slots=bundle.slot_names, case_id=case_id)

    async def list_cases(self, user_id: str, limit: Optional[int] = None) -> List[CaseRecord]:
        _require("userId", user_id)
        return await asyncio.to_thread(self._ledger.list_by_user, user_id, limit)

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    async def chat(self, user_id: str, prompt: str) -> ChatResult:
        _require("userId", user_id)
        _require("prompt", prompt)
        bundle = await self._load(user_id, "chat")

        try:
            completion = await self._call(
                user_id, "chat", bundle, (SLOT_AI_API_KEY,),
                lambda api_key: self._ai.complete_chat(api_key, prompt),
            )
        except ProviderError as exc:
            await self._record(user_id, ChatDetails(
                prompt=prompt,
                model=getattr(self._ai, "chat_model", ""),
                outcome=Outcome.FAILED,
                error=exc.kind,
            ))
            raise

        case_id = await self._record(user_id, ChatDetails(
            prompt=prompt, response=completion.text, model=completion.model,
        ))
        return ChatResult(response=completion.text, model=completion.model, case_id=case_id)

    async def image(self, user_id: str, prompt: str) -> ImageResult:
        _require("userId", user_id)
        _require("prompt", prompt)
        bundle = await self._load(user_id, "image")

        try:
            image = await self._call(
                user_id, "image", bundle, (SLOT_AI_API_KEY,),
                lambda api_key: self._ai.generate_image(api_key, prompt),
            )
        except ProviderError as exc:
            await self._record(user_id, ImageDetails(
                prompt=prompt,
                model=getattr(self._ai, "image_model", ""),
                outcome=Outcome.FAILED,
                error=exc.kind,
            ))
            raise

        case_id = await self._record(user_id, ImageDetails(
            prompt=prompt, image_url=image.url, model=image.model,
        ))
        return ImageResult(
            image_url=image.url,
            model=image.model,
            case_id=case_id,
            revised_prompt=image.revised_prompt,
        )

    async def payment(
        self,
        user_id: str,
        amount: Union[Decimal, str, int, float],
        currency: Optional[str] = None,
    ) -> PaymentResult:
        _require("userId", user_id)
        value = parse_amount(amount)
        currency = (currency or self._currency).upper()
        amount_text = format_amount(value)
        bundle = await self._load(user_id, "payment")

        try:
            order = await self._call(
                user_id, "payment", bundle, (SLOT_PAYMENT_CLIENT_ID, SLOT_PAYMENT_SECRET),
                lambda client_id, secret: self._payments.create_order(
                    client_id, secret, value, currency
                ),
            )
        except ProviderError as exc:
            await self._record(user_id, PaymentDetails(
                amount=amount_text,
                currency=currency,
                outcome=Outcome.FAILED,
                error=exc.kind,
            ))
            raise

        case_id = await self._record(user_id, PaymentDetails(
            amount=amount_text, currency=currency, order_id=order.order_id, status=order.status,
        ))
        return PaymentResult(
            order_id=order.order_id,
            status=order.status,
            amount=amount_text,
            currency=currency,
            case_id=case_id,
            approve_url=order.approve_url,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _load(self, user_id: str, capability: str) -> CredentialBundle:
        try:
            return await asyncio.to_thread(self._store.get, user_id)
        except CredentialsNotFound:
            self.events.log_event(
                EventType.CREDENTIALS_MISSING,
                EventSeverity.INFO,
                f"No credentials registered for {capability}",
                details={"user_id": user_id, "capability": capability},
            )
            raise
        except DecryptionError:
            self._log_decryption_failure(user_id, capability)
            raise

    async def _call(
        self,
        user_id: str,
        capability: str,
        bundle: CredentialBundle,
        slots: Sequence[str],
        invoke: Callable[..., Awaitable],
    ):
        _advance(user_id, capability, CallStage.CREDENTIALS_LOADED)
        try:
            secrets = [self._store.reveal(bundle, slot) for slot in slots]
        except CredentialsNotFound as exc:
            self.events.log_event(
                EventType.CREDENTIALS_MISSING,
                EventSeverity.INFO,
                f"Credential slot '{exc.slot}' missing for {capability}",
                details={"user_id": user_id, "capability": capability, "slot": exc.slot},
            )
            raise
        except DecryptionError:
            self._log_decryption_failure(user_id, capability)
            raise

        _advance(user_id, capability, CallStage.AUTHENTICATED)
        try:
            _advance(user_id, capability, CallStage.CALL_IN_FLIGHT)
            result = await asyncio.wait_for(invoke(*secrets), timeout=self._timeout)
        except asyncio.TimeoutError:
            provider = self._provider_name(capability)
            self.events.log_event(
                EventType.PROVIDER_TIMEOUT,
                EventSeverity.WARNING,
                f"{capability} call timed out",
                details={
                    "user_id": user_id,
                    "capability": capability,
                    "provider": provider,
                    "timeout": self._timeout,
                },
            )
            raise ProviderTimeout(provider, self._timeout) from None
        except ProviderError as exc:
            self._log_provider_failure(user_id, capability, exc)
            raise
        except Exception as exc:
            logger.exception("Unexpected %s provider failure for %s", capability, user_id)
            wrapped = ProviderError(
                f"Unexpected {capability} provider failure",
                provider=self._provider_name(capability),
            )
            self._log_provider_failure(user_id, capability, wrapped)
            raise wrapped from exc
        finally:
            del secrets

        _advance(user_id, capability, CallStage.SUCCEEDED)
        self.events.log_event(
            EventType.PROVIDER_CALL,
            EventSeverity.INFO,
            f"{capability} call succeeded",
            details={"user_id": user_id, "capability": capability},
        )
        return result

    async def _record(self, user_id: str, details: CaseDetails) -> Optional[str]:
        """Append a case; on failure log and return None instead of raising."""
        try:
            record = await asyncio.to_thread(self._ledger.append, user_id, details)
        except Exception as exc:
            logger.error("Case ledger write failed for %s: %s", user_id, exc)
            self.events.log_event(
                EventType.LEDGER_WRITE_FAILED,
                EventSeverity.CRITICAL,
                "Case record could not be written",
                details={
                    "user_id": user_id,
                    "case_type": details.case_type.value,
                    "error": type(exc).__name__,
                },
            )
            return None
        return record.id

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _provider_name(self, capability: str) -> str:
        provider = self._payments if capability == "payment" else self._ai
        return getattr(provider, "name", capability)

    def _log_provider_failure(self, user_id: str, capability: str, exc: ProviderError) -> None:
        _advance(user_id, capability, CallStage.FAILED)
        self.events.log_event(
            EventType.PROVIDER_FAILED,
            EventSeverity.WARNING,
            f"{capability} call failed",
            details={
                "user_id": user_id,
                "capability": capability,
                "provider": exc.provider,
                "kind": exc.kind,
                "upstream_status": exc.upstream_status,
            },
        )

    def _log_decryption_failure(self, user_id: str, capability: str) -> None:
        self.events.log_event(
            EventType.DECRYPTION_FAILED,
            EventSeverity.CRITICAL,
            "Stored credentials could not be decrypted",
            details={"user_id": user_id, "capability": capability},
        )


def _advance(user_id: str, capability: str, stage: CallStage) -> None:
    logger.debug("%s request for %s -> %s", capability, user_id, stage.value)


def _require(name: str, value: Optional[str]) -> None:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")


def parse_amount(amount: Union[Decimal, str, int, float, None]) -> Decimal:
    """Validate a payment amount: positive, at most two decimal places."""
    if amount is None or amount == "":
        raise ValidationError("amount is required")
    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        raise ValidationError(f"amount must be a number, got {amount!r}") from None
    if not value.is_finite() or value <= 0:
        raise ValidationError("amount must be greater than zero")
    if value.as_tuple().exponent < -2:
        raise ValidationError("amount must have at most two decimal places")
    try:
        value.quantize(CENTS)
    except InvalidOperation:
        raise ValidationError("amount is too large") from None
    return value
