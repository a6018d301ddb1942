"""
marketplace/services/checkout_pipeline.py - POST /checkout orchestration.

Fixed stage order, no parallelism:

    rate limit → Idempotency-Key check → ledger.begin
        → (replay: stored status/body/signature, done; the body is not re-validated)
        → body validation → place_order → response body → sign → ledger.commit → return

Every outcome is returned as a CheckoutResult (status, exact body bytes,
headers); nothing is raised to the router. Rate-limit rejections are the only
unsigned responses. A claimed key is released on any failure so the client can
retry with the same key.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import sessionmaker

from marketplace.core.crypto import canonical_json, sign_body
from marketplace.core.errors import CheckoutError, InternalError, RateLimitExceeded, ValidationError
from marketplace.core.ratelimit import FixedWindowRateLimiter
from marketplace.schemas.checkout import CheckoutRequest
from marketplace.services.checkout import place_order
from marketplace.services.idempotency import IdempotencyLedger, StoredResponse, validate_idempotency_key
from marketplace.services.orders_helpers import checkout_payload

logger = logging.getLogger("marketplace.checkout")

SIGNATURE_HEADER = "X-Signature"
REPLAYED_HEADER = "Idempotent-Replayed"


@dataclass(frozen=True)
class CheckoutResult:
    status_code: int
    body: bytes
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def signature(self) -> Optional[str]:
        return self.headers.get(SIGNATURE_HEADER)

    def json(self) -> Any:
        return json.loads(self.body)


def parse_checkout_request(raw_body: Optional[bytes]) -> CheckoutRequest:
    data: Any = {}
    if raw_body and raw_body.strip():
        try:
            data = json.loads(raw_body)
        except ValueError:
            raise ValidationError("Request body must be valid JSON")
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return CheckoutRequest.model_validate(data)
    except PydanticValidationError as exc:
        details = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in exc.errors()
        ]
        raise ValidationError("Invalid checkout request", details=details)


class CheckoutPipeline:
    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: IdempotencyLedger,
        limiter: FixedWindowRateLimiter,
        secret: Optional[str] = None,
    ) -> None:
        self.session_factory = session_factory
        self.ledger = ledger
        self.limiter = limiter
        self.secret = secret

    def _respond(self, status_code: int, payload: Dict[str, Any]) -> CheckoutResult:
        body = canonical_json(payload)
        return CheckoutResult(status_code, body, {SIGNATURE_HEADER: sign_body(body, self.secret)})

    def _replay(self, stored: StoredResponse) -> CheckoutResult:
        signature = stored.signature or sign_body(stored.body, self.secret)
        return CheckoutResult(
            stored.status_code,
            stored.body,
            {SIGNATURE_HEADER: signature, REPLAYED_HEADER: "true"},
        )

    def run(
        self,
        *,
        client_id: str,
        buyer_id: str,
        idempotency_key: Optional[str],
        raw_body: Optional[bytes],
    ) -> CheckoutResult:
        try:
            self.limiter.hit(client_id)
        except RateLimitExceeded as exc:
            logger.warning("Checkout rate limit exceeded for client %s", client_id)
            return CheckoutResult(
                exc.status_code,
                canonical_json(exc.to_body()),
                {"Retry-After": str(exc.retry_after)},
            )

        claimed = False
        try:
            key = validate_idempotency_key(idempotency_key)

            # Replays skip body validation; the stored response is returned as is
            stored = self.ledger.begin(key, scope=buyer_id)
            if stored is not None:
                return self._replay(stored)
            claimed = True

            request = parse_checkout_request(raw_body)

            with self.session_factory() as db:
                placed = place_order(
                    db,
                    buyer_id=buyer_id,
                    shipping_address=request.shipping_address,
                    payment_method=request.payment_method,
                    idempotency_key=key,
                )

            result = self._respond(201, checkout_payload(placed))
            self.ledger.commit(key, result.status_code, result.body, result.signature, scope=buyer_id)
            claimed = False
            return result
        except CheckoutError as exc:
            logger.info("Checkout rejected for buyer %s: %s", buyer_id, exc.error)
            return self._respond(exc.status_code, exc.to_body())
        except Exception:
            logger.exception("Checkout failed for buyer %s", buyer_id)
            return self._respond(500, InternalError().to_body())
        finally:
            if claimed:
                try:
                    self.ledger.release(key, scope=buyer_id)
                except Exception:
                    logger.exception("Could not release idempotency key %s; it expires with the TTL", key)
