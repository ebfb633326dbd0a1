from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Sequence
from pathlib import Path

from sqlalchemy import Engine

from analyst_panel.infrastructure.database import build_session_factory, init_db
from analyst_panel.infrastructure.models import RateLimitRecordRow
from analyst_panel.shared.kernel.tools.logger import get_logger, log_event

logger = get_logger(__name__)


def _coerce_timestamps(raw: object) -> list[float]:
    if not isinstance(raw, list):
        return []
    return [
        float(ts)
        for ts in raw
        if isinstance(ts, (int, float)) and not isinstance(ts, bool)
    ]


class InMemoryRateLimitStore:
    def __init__(self, initial: dict[str, Sequence[float]] | None = None) -> None:
        self._records: dict[str, list[float]] = {
            key: list(value) for key, value in (initial or {}).items()
        }
        self._lock = threading.Lock()

    def get(self, provider_id: str) -> list[float]:
        with self._lock:
            return list(self._records.get(provider_id, []))

    def put(self, provider_id: str, timestamps: Sequence[float]) -> None:
        with self._lock:
            self._records[provider_id] = list(timestamps)


class JsonFileRateLimitStore:
    """All providers in one JSON document, replaced atomically on write."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, list[float]]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            log_event(
                logger,
                event="rate_limit_store_read_failed",
                message="rate limit file unreadable; treating as empty",
                level=logging.WARNING,
                error_code="RATE_LIMIT_STORE_READ_FAILED",
                fields={"path": str(self.path), "exception": str(exc)},
            )
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(key): _coerce_timestamps(value) for key, value in payload.items()}

    def get(self, provider_id: str) -> list[float]:
        with self._lock:
            return self._read_all().get(provider_id, [])

    def put(self, provider_id: str, timestamps: Sequence[float]) -> None:
        with self._lock:
            records = self._read_all()
            records[provider_id] = list(timestamps)
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(records, handle, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise


class SqlAlchemyRateLimitStore:
    def __init__(self, engine: Engine, *, create_schema: bool = True) -> None:
        if create_schema:
            init_db(engine)
        self._session_factory = build_session_factory(engine)

    def get(self, provider_id: str) -> list[float]:
        with self._session_factory() as session:
            row = session.get(RateLimitRecordRow, provider_id)
            if row is None:
                return []
            return _coerce_timestamps(row.timestamps)

    def put(self, provider_id: str, timestamps: Sequence[float]) -> None:
        with self._session_factory() as session:
            session.merge(
                RateLimitRecordRow(provider_id=provider_id, timestamps=list(timestamps))
            )
            session.commit()
