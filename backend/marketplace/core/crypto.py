import hashlib
import hmac
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from marketplace.config import settings


def _json_default(value: Any):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def canonical_json(payload: Any) -> bytes:
    """Sorted keys, no whitespace, utf-8: the exact bytes that get signed and sent."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    ).encode("utf-8")


def signing_secret() -> str:
    return settings.signing_secret


def sign_body(body: bytes, secret: Optional[str] = None) -> str:
    """HMAC-SHA256 hex digest of the response body (X-Signature)."""
    key = (secret or signing_secret()).encode("utf-8")
    return hmac.new(key, body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, signature: str, secret: Optional[str] = None) -> bool:
    return hmac.compare_digest(sign_body(body, secret), signature or "")
