# API - Custody Routes
#
#   POST /keys      - store an encrypted credential bundle
#   POST /chat      - chat completion with the user's AI key
#   POST /image     - image generation with the user's AI key
#   POST /payment   - payment order with the user's payment credentials
#   POST /paypal    - same as /payment (legacy route name)
#   GET  /cases     - the user's case history, newest first
#
# Routes only translate HTTP to gateway calls. Errors propagate as
# CustodyError subclasses and are rendered by the handlers in main.py.

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ..context import CustodyContext
from ..gateway import ProviderGateway
from .models import PaymentRequest, PromptRequest, StoreKeysRequest

router = APIRouter(tags=["custody"])


def get_context(request: Request) -> CustodyContext:
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise RuntimeError("Custody context not initialized")
    return context


def get_gateway(context: CustodyContext = Depends(get_context)) -> ProviderGateway:
    return context.gateway


@router.post("/keys")
async def store_keys(
    request: StoreKeysRequest,
    gateway: ProviderGateway = Depends(get_gateway),
):
    """Encrypt and store the submitted credentials, replacing any earlier bundle."""
    stored = await gateway.store_credentials(request.user_id, request.to_slots())
    return {
        "message": "Credentials stored",
        "slots": stored.slots,
        "caseId": stored.case_id,
    }


@router.post("/chat")
async def chat(
    request: PromptRequest,
    gateway: ProviderGateway = Depends(get_gateway),
):
    result = await gateway.chat(request.user_id, request.prompt)
    return {"response": result.response, "caseId": result.case_id}


@router.post("/image")
async def image(
    request: PromptRequest,
    gateway: ProviderGateway = Depends(get_gateway),
):
    result = await gateway.image(request.user_id, request.prompt)
    return {
        "imageUrl": result.image_url,
        "revisedPrompt": result.revised_prompt,
        "caseId": result.case_id,
    }


@router.post("/payment")
@router.post("/paypal", include_in_schema=False)
async def payment(
    request: PaymentRequest,
    gateway: ProviderGateway = Depends(get_gateway),
):
    result = await gateway.payment(request.user_id, request.amount, request.currency)
    return {
        "orderId": result.order_id,
        "status": result.status,
        "amount": result.amount,
        "currency": result.currency,
        "approveUrl": result.approve_url,
        "caseId": result.case_id,
    }


@router.get("/cases")
async def list_cases(
    user_id: str = Query(..., alias="userId", min_length=1),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    gateway: ProviderGateway = Depends(get_gateway),
):
    """Return the user's case records, newest first."""
    # Body models strip userId; match that here
    records = await gateway.list_cases(user_id.strip(), limit)
    return [record.to_dict() for record in records]
