# Providers - PayPal Orders
#
# Creates a checkout order with the caller's own REST app credentials:
#   1. POST /v1/oauth2/token   (client_credentials, HTTP basic auth)
#   2. POST /v2/checkout/orders (intent=CAPTURE, one purchase unit)
#
# A fresh httpx.AsyncClient is opened per call. The access token lives only
# for the duration of that call.

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from ..config import PAYPAL_ENVIRONMENTS
from ..exceptions import ProviderError
from .base import PaymentOrder, format_amount, redact

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1/oauth2/token"
ORDERS_PATH = "/v2/checkout/orders"


class PayPalProvider:
    """PaymentProvider backed by the PayPal REST API.

    Args:
        base_url: API root (sandbox by default).
        timeout: Per-request HTTP timeout in seconds.
        transport: Optional httpx transport (tests use httpx.MockTransport).
    """

    name = "paypal"

    def __init__(
        self,
        base_url: str = PAYPAL_ENVIRONMENTS["sandbox"],
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json", "User-Agent": "CustodyGateway/1.0"},
        )

    async def create_order(
        self,
        client_id: str,
        client_secret: str,
        amount: Decimal,
        currency: str,
    ) -> PaymentOrder:
        secrets = [client_id, client_secret]
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {"amount": {"currency_code": currency, "value": format_amount(amount)}}
            ],
        }

        async with self._client() as client:
            try:
                token = await self._access_token(client, client_id, client_secret)
                resp = await client.post(
                    ORDERS_PATH,
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as exc:
                raise ProviderError(
                    f"Could not reach PayPal: {redact(str(exc), secrets)}",
                    provider=self.name,
                ) from None

        if resp.status_code in (401, 403):
            raise ProviderError(
                "PayPal refused the order request for these credentials",
                provider=self.name,
                credential_rejected=True,
                upstream_status=resp.status_code,
            )
        if resp.status_code >= 400:
            raise ProviderError(
                f"PayPal order creation failed ({resp.status_code}): "
                f"{redact(self._error_summary(resp), secrets)}",
                provider=self.name,
                upstream_status=resp.status_code,
            )

        data = self._json(resp)
        order_id = data.get("id")
        if not order_id:
            raise ProviderError("PayPal response has no order id", provider=self.name)

        approve_url = next(
            (link.get("href") for link in data.get("links", []) if link.get("rel") == "approve"),
            None,
        )
        return PaymentOrder(order_id=order_id, status=data.get("status", ""), approve_url=approve_url)

    async def _access_token(
        self,
        client: httpx.AsyncClient,
        client_id: str,
        client_secret: str,
    ) -> str:
        resp = await client.post(
            TOKEN_PATH,
            data={"grant_type": "client_credentials"},
            auth=(client_id, client_secret),
        )
        if resp.status_code in (400, 401, 403):
            # invalid_client comes back as 401; malformed credentials as 400
            raise ProviderError(
                "PayPal rejected the stored client credentials",
                provider=self.name,
                credential_rejected=True,
                upstream_status=resp.status_code,
            )
        if resp.status_code >= 400:
            raise ProviderError(
                f"PayPal token request failed ({resp.status_code})",
                provider=self.name,
                upstream_status=resp.status_code,
            )
        token = self._json(resp).get("access_token")
        if not token:
            raise ProviderError("PayPal token response has no access_token", provider=self.name)
        return token

    def _json(self, resp: httpx.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            raise ProviderError("PayPal returned a non-JSON response", provider=self.name) from None
        if not isinstance(data, dict):
            raise ProviderError("PayPal returned an unexpected response", provider=self.name)
        return data

    @staticmethod
    def _error_summary(resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(data, dict):
            return str(data.get("message") or data.get("name") or data)[:200]
        return str(data)[:200]
