# marketplace/services/idempotency_sweep.py
from __future__ import annotations

import logging

from marketplace.database import SessionLocal
from marketplace.services.idempotency import IdempotencyLedger

logger = logging.getLogger("marketplace.idempotency")


def purge_expired_idempotency_records() -> int:
    """
    Süresi dolmuş idempotency kayıtlarını siler (scheduler job'u).
    Expired records are also purged lazily on lookup; this only keeps the table small.
    Dönüş: silinen kayıt sayısı.
    """
    try:
        return IdempotencyLedger(SessionLocal).purge_expired()
    except Exception:
        logger.exception("Idempotency sweep failed")
        return 0
