# API - Request Models
#
# Wire names are camelCase (userId, openaiKey, ...); snake_case is accepted
# too. Secret-bearing fields are excluded from model repr.

from decimal import Decimal
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..vault import SLOT_AI_API_KEY, SLOT_PAYMENT_CLIENT_ID, SLOT_PAYMENT_SECRET


class _Request(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    user_id: str = Field(..., alias="userId", min_length=1, max_length=200)


class StoreKeysRequest(_Request):
    openai_key: Optional[str] = Field(None, alias="openaiKey", repr=False)
    paypal_client_id: Optional[str] = Field(None, alias="paypalClientId", repr=False)
    paypal_secret: Optional[str] = Field(None, alias="paypalSecret", repr=False)

    def to_slots(self) -> Dict[str, str]:
        """Map submitted fields to vault slot names, dropping empty ones."""
        slots = {
            SLOT_AI_API_KEY: self.openai_key,
            SLOT_PAYMENT_CLIENT_ID: self.paypal_client_id,
            SLOT_PAYMENT_SECRET: self.paypal_secret,
        }
        return {slot: value for slot, value in slots.items() if value}


class PromptRequest(_Request):
    prompt: str = Field(..., min_length=1, max_length=32_000)


class PaymentRequest(_Request):
    amount: Decimal
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
