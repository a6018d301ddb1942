"""
# `marketplace/routers/checkout.py` - Checkout endpoint

### `POST /checkout`
**Headers:** `Authorization: Bearer <token>` (non-guest), `Idempotency-Key` (required, UUID v4 or 16–128 char token)
**Body:** `{"shippingAddress": "...", "paymentMethod": "card"}` (`paymentMethod` optional, defaults to `pending`)

**Responses:**
- `201` order + items + payment, `X-Signature` = HMAC-SHA256(body)
- `400` validation / empty cart / stock / idempotency key errors
- `409` same key still being processed
- `429` rate limit (`Retry-After`, unsigned)
- `500` unexpected; safe to retry with the same key

A replay of a known key inside the TTL returns the stored status/body/signature
byte for byte, with `Idempotent-Replayed: true`.
"""
from fastapi import APIRouter, Depends, Header, Request, Response
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool
from typing import Optional

from marketplace.core.ratelimit import FixedWindowRateLimiter
from marketplace.core.security import require_non_guest
from marketplace.database import get_session_factory
from marketplace.schemas.principal import Principal
from marketplace.services.checkout_pipeline import CheckoutPipeline
from marketplace.services.idempotency import IdempotencyLedger

router = APIRouter(tags=["Checkout"])


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.checkout_rate_limiter


def get_checkout_pipeline(
    session_factory: sessionmaker = Depends(get_session_factory),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> CheckoutPipeline:
    return CheckoutPipeline(session_factory, IdempotencyLedger(session_factory), limiter)


def _client_id(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/checkout", status_code=201)
async def checkout(
    request: Request,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    principal: Principal = Depends(require_non_guest),
    pipeline: CheckoutPipeline = Depends(get_checkout_pipeline),
):
    raw_body = await request.body()
    # Pipeline blocks on the database; keep it off the event loop
    result = await run_in_threadpool(
        pipeline.run,
        client_id=_client_id(request),
        buyer_id=principal.uid,
        idempotency_key=idempotency_key,
        raw_body=raw_body,
    )
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type="application/json",
        headers=result.headers,
    )
