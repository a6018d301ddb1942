from sqlalchemy import Column, DateTime, Integer, String, Text

from marketplace.database import Base
from marketplace.utils.clock import utcnow

IN_PROGRESS = "in_progress"
COMPLETED = "completed"


class IdempotencyRecord(Base):
    """
    One row per Idempotency-Key. The primary key is the claim: inserting it is
    the atomic check-and-set that lets exactly one request run the checkout.
    """
    __tablename__ = "idempotency_records"

    key = Column(String(300), primary_key=True)   # "<buyer uid>:<Idempotency-Key>"
    state = Column(String(16), nullable=False, default=IN_PROGRESS)
    status_code = Column(Integer, nullable=True)
    body = Column(Text, nullable=True)          # exact response bytes (utf-8)
    signature = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
