"""
marketplace/services/idempotency.py - Idempotency ledger for checkout.

    ledger.begin(key, scope)   -> None (fresh, key claimed) | StoredResponse (replay)
    ledger.commit(key, status_code, body, signature, scope)
    ledger.release(key, scope) -> drop an unfinished claim so the key can be retried

Keys are scoped by the buyer uid, so one buyer can never replay another buyer's
response.

The claim is an INSERT on the primary key of `idempotency_records`, so two
requests racing on the same new key cannot both get past `begin`: the loser
sees the winner's row and gets IdempotencyInProgress (or the stored response
once the winner has committed). Expired rows are purged lazily on access and
in bulk by the scheduled sweep.
"""
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from marketplace.config import settings
from marketplace.core.errors import (
    IdempotencyInProgress,
    InvalidIdempotencyKey,
    MissingIdempotencyKey,
)
from marketplace.model.idempotency import COMPLETED, IN_PROGRESS, IdempotencyRecord
from marketplace.utils.clock import utcnow

logger = logging.getLogger("marketplace.idempotency")

_UUID_V4 = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE
)
# Opaque token: 16-128 printable ASCII characters, no whitespace
_OPAQUE_TOKEN = re.compile(r"^[\x21-\x7e]{16,128}$")


def validate_idempotency_key(key: Optional[str]) -> str:
    if key is None or not key.strip():
        raise MissingIdempotencyKey()
    if not (_UUID_V4.match(key) or _OPAQUE_TOKEN.match(key)):
        raise InvalidIdempotencyKey()
    return key


@dataclass(frozen=True)
class StoredResponse:
    status_code: int
    body: bytes
    signature: Optional[str]


class IdempotencyLedger:
    def __init__(
        self,
        session_factory: sessionmaker,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.ttl = timedelta(seconds=settings.idempotency_ttl_seconds if ttl_seconds is None else ttl_seconds)
        self._clock = clock

    @staticmethod
    def record_key(key: str, scope: Optional[str] = None) -> str:
        return f"{scope}:{key}" if scope else key

    def _expired(self, record: IdempotencyRecord, now: datetime) -> bool:
        return record.created_at <= now - self.ttl

    def begin(self, key: str, scope: Optional[str] = None) -> Optional[StoredResponse]:
        validate_idempotency_key(key)
        record_key = self.record_key(key, scope)
        # Second pass only happens when another request inserted the key between our read and insert
        for _ in range(2):
            now = self._clock()
            try:
                with self._session_factory() as db, db.begin():
                    record = db.get(IdempotencyRecord, record_key)
                    if record is not None and self._expired(record, now):
                        logger.info("Idempotency key %s expired; purging", key)
                        db.delete(record)
                        db.flush()
                        record = None

                    if record is None:
                        db.add(IdempotencyRecord(key=record_key, state=IN_PROGRESS, created_at=now))
                        db.flush()
                        return None

                    if record.state == COMPLETED:
                        logger.info("Replaying stored response for idempotency key %s", key)
                        return StoredResponse(
                            status_code=record.status_code,
                            body=record.body.encode("utf-8"),
                            signature=record.signature,
                        )
                    raise IdempotencyInProgress()
            except IntegrityError:
                logger.info("Idempotency key %s claimed concurrently; re-reading", key)
                continue
        raise IdempotencyInProgress()

    def commit(
        self,
        key: str,
        status_code: int,
        body: bytes,
        signature: Optional[str],
        scope: Optional[str] = None,
    ) -> None:
        record_key = self.record_key(key, scope)
        now = self._clock()
        with self._session_factory() as db, db.begin():
            record = db.get(IdempotencyRecord, record_key)
            if record is None:
                # Swept while the checkout was running; store it again
                record = IdempotencyRecord(key=record_key)
                db.add(record)
            record.state = COMPLETED
            record.status_code = status_code
            record.body = body.decode("utf-8")
            record.signature = signature
            record.created_at = now

    def release(self, key: str, scope: Optional[str] = None) -> None:
        record_key = self.record_key(key, scope)
        with self._session_factory() as db, db.begin():
            db.execute(
                delete(IdempotencyRecord)
                .where(IdempotencyRecord.key == record_key, IdempotencyRecord.state == IN_PROGRESS)
            )

    def purge_expired(self) -> int:
        cutoff = self._clock() - self.ttl
        with self._session_factory() as db, db.begin():
            result = db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.created_at <= cutoff))
        if result.rowcount:
            logger.info("Purged %d expired idempotency records", result.rowcount)
        return result.rowcount or 0
