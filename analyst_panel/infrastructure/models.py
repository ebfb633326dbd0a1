from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RateLimitRecordRow(Base):
    """
    Rolling call timestamps for one provider.
    ``timestamps`` holds epoch seconds in ascending order, pruned to 24h.
    """

    __tablename__ = "rate_limit_records"

    provider_id = Column(String, primary_key=True)
    timestamps = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
