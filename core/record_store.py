"""
Record Store
============

SQL persistence for conversion records, per-request performance stats and
security events, using SQLAlchemy Core so the same code runs against the
default SQLite file or a server database.

Three tables:

* ``nursing_records``   - conversion history (input, output, options)
* ``performance_stats`` - one row per /api request
* ``security_logs``     - validation and auth events (never raw content)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    distinct,
    func,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from config import Settings, get_settings
from exceptions import StorageUnavailableError
from models import ConversionOptions, SecuritySeverity, utc_now


logger = logging.getLogger(__name__)

metadata = MetaData()

nursing_records = Table(
    "nursing_records",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("session_id", String(128), nullable=False, index=True),
    Column("user_id", Integer, nullable=True, index=True),
    Column("input_text", Text, nullable=False),
    Column("output_text", Text, nullable=False),
    Column("options_style", String(32), nullable=False),
    Column("options_doc_type", String(32), nullable=False),
    Column("options_format", String(32), nullable=False),
    Column("char_limit", Integer, nullable=False, default=1000),
    Column("response_time", Integer),
    Column("created_at", DateTime, nullable=False, default=utc_now, index=True),
    Column("ip_address", String(64)),
    Column("user_agent", String(256)),
)

performance_stats = Table(
    "performance_stats",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("endpoint", String(256), nullable=False, index=True),
    Column("method", String(16), nullable=False),
    Column("status_code", Integer, nullable=False),
    Column("response_time", Integer, nullable=False),
    Column("error_type", String(64)),
    Column("created_at", DateTime, nullable=False, default=utc_now, index=True),
    Column("ip_address", String(64)),
)

security_logs = Table(
    "security_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("event_type", String(64), nullable=False, index=True),
    Column("description", Text),
    Column("severity", String(16), nullable=False, default="info"),
    Column("ip_address", String(64)),
    Column("user_agent", String(256)),
    Column("created_at", DateTime, nullable=False, default=utc_now, index=True),
)

HISTORY_COLUMNS = (
    nursing_records.c.id,
    nursing_records.c.input_text,
    nursing_records.c.output_text,
    nursing_records.c.options_style,
    nursing_records.c.options_doc_type,
    nursing_records.c.options_format,
    nursing_records.c.char_limit,
    nursing_records.c.response_time,
    nursing_records.c.created_at,
)


def _row_to_dict(row) -> dict[str, Any]:
    data = dict(row._mapping)
    for key, value in data.items():
        if isinstance(value, datetime):
            data[key] = value.isoformat()
    return data


class RecordStore:
    """Persistent storage for records, performance stats and security logs."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[Engine] = None
    ) -> None:
        self.settings = settings or get_settings()
        self._engine = engine or create_engine(self.settings.database_url, pool_pre_ping=True)
        self._init_schema()

    @property
    def engine(self) -> Engine:
        return self._engine

    def _init_schema(self) -> None:
        """Create tables and indexes if they do not already exist."""
        try:
            metadata.create_all(self._engine)
            logger.info(f"RecordStore initialised ({self._engine.url.get_backend_name()})")
        except SQLAlchemyError as e:
            raise StorageUnavailableError("records", str(e))

    def ping(self) -> bool:
        """Return True when a trivial query succeeds."""
        try:
            with self._engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.warning(f"RecordStore ping failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_record(
        self,
        session_id: str,
        input_text: str,
        output_text: str,
        options: ConversionOptions,
        response_time_ms: int,
        user_id: Optional[int] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> int:
        """Insert a conversion record and return its id."""
        with self._engine.begin() as conn:
            result = conn.execute(
                nursing_records.insert().values(
                    session_id=session_id,
                    user_id=user_id,
                    input_text=input_text,
                    output_text=output_text,
                    options_style=options.style.value,
                    options_doc_type=options.doc_type.value,
                    options_format=options.format.value,
                    char_limit=options.char_limit,
                    response_time=response_time_ms,
                    created_at=utc_now(),
                    ip_address=ip_address,
                    user_agent=(user_agent or "")[:256] or None,
                )
            )
            return result.inserted_primary_key[0]

    def log_performance(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        response_time_ms: int,
        error_type: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                performance_stats.insert().values(
                    endpoint=endpoint,
                    method=method,
                    status_code=status_code,
                    response_time=response_time_ms,
                    error_type=error_type,
                    created_at=utc_now(),
                    ip_address=ip_address,
                )
            )

    def log_security_event(
        self,
        event_type: str,
        description: str,
        severity: SecuritySeverity = SecuritySeverity.INFO,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> None:
        with self._engine.begin() as conn:
            conn.execute(
                security_logs.insert().values(
                    event_type=event_type,
                    description=description,
                    severity=severity.value,
                    ip_address=ip_address,
                    user_agent=(user_agent or "")[:256] or None,
                    created_at=utc_now(),
                )
            )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def get_user_history(self, user_id: int, limit: int = 50) -> list[dict[str, Any]]:
        """Most recent records owned by a user."""
        query = (
            select(*HISTORY_COLUMNS)
            .where(nursing_records.c.user_id == user_id)
            .order_by(nursing_records.c.created_at.desc(), nursing_records.c.id.desc())
            .limit(limit)
        )
        with self._engine.connect() as conn:
            return [_row_to_dict(row) for row in conn.execute(query)]

    def get_session_history(self, session_id: str, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent anonymous records of a browser session."""
        query = (
            select(*HISTORY_COLUMNS)
            .where(nursing_records.c.session_id == session_id)
            .where(nursing_records.c.user_id.is_(None))
            .order_by(nursing_records.c.created_at.desc(), nursing_records.c.id.desc())
            .limit(limit)
        )
        with self._engine.connect() as conn:
            return [_row_to_dict(row) for row in conn.execute(query)]

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    @staticmethod
    def _since(hours: int) -> datetime:
        return utc_now() - timedelta(hours=hours)

    def get_record_stats(self, hours: int = 24) -> dict[str, Any]:
        """Count and response-time aggregates over the window."""
        rt = nursing_records.c.response_time
        query = (
            select(
                func.count().label("total_records"),
                func.count(distinct(func.date(nursing_records.c.created_at))).label("active_days"),
                func.avg(rt).label("avg_response_time"),
                func.min(rt).label("min_response_time"),
                func.max(rt).label("max_response_time"),
            )
            .where(nursing_records.c.created_at > self._since(hours))
        )
        with self._engine.connect() as conn:
            row = conn.execute(query).one()
        return {
            "total_records": row.total_records or 0,
            "active_days": row.active_days or 0,
            "avg_response_time": round(float(row.avg_response_time or 0)),
            "min_response_time": row.min_response_time or 0,
            "max_response_time": row.max_response_time or 0,
        }

    def get_usage_patterns(self, hours: int = 24) -> list[dict[str, Any]]:
        """Usage counts per option combination."""
        c = nursing_records.c
        query = (
            select(
                c.options_style,
                c.options_doc_type,
                c.options_format,
                func.count().label("usage_count"),
                func.avg(c.response_time).label("avg_response_time"),
            )
            .where(c.created_at > self._since(hours))
            .group_by(c.options_style, c.options_doc_type, c.options_format)
            .order_by(func.count().desc())
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).all()
        return [
            {
                "options_style": row.options_style,
                "options_doc_type": row.options_doc_type,
                "options_format": row.options_format,
                "usage_count": row.usage_count,
                "avg_response_time": round(float(row.avg_response_time or 0)),
            }
            for row in rows
        ]

    def get_performance_breakdown(self, hours: int = 24) -> list[dict[str, Any]]:
        """Request counts and mean latency per status code."""
        c = performance_stats.c
        query = (
            select(
                c.status_code,
                func.count().label("request_count"),
                func.avg(c.response_time).label("avg_response_time"),
            )
            .where(c.created_at > self._since(hours))
            .group_by(c.status_code)
            .order_by(c.status_code)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).all()
        return [
            {
                "status_code": row.status_code,
                "count": row.request_count,
                "avg_response_time": round(float(row.avg_response_time or 0)),
            }
            for row in rows
        ]

    def get_error_rate(self, hours: int = 24) -> float:
        """Share of /api requests that ended with a 5xx status."""
        c = performance_stats.c
        since = self._since(hours)
        with self._engine.connect() as conn:
            total = conn.execute(
                select(func.count()).select_from(performance_stats).where(c.created_at > since)
            ).scalar_one()
            errors = conn.execute(
                select(func.count())
                .select_from(performance_stats)
                .where(c.created_at > since)
                .where(c.status_code >= 500)
            ).scalar_one()
        return round(errors / total, 4) if total else 0.0

    def get_security_breakdown(self, hours: int = 24) -> list[dict[str, Any]]:
        """Event counts per (event_type, severity)."""
        c = security_logs.c
        query = (
            select(c.event_type, c.severity, func.count().label("event_count"))
            .where(c.created_at > self._since(hours))
            .group_by(c.event_type, c.severity)
            .order_by(c.event_type, c.severity)
        )
        with self._engine.connect() as conn:
            rows = conn.execute(query).all()
        return [
            {"event_type": row.event_type, "severity": row.severity, "count": row.event_count}
            for row in rows
        ]


def create_record_store(settings: Optional[Settings] = None) -> RecordStore:
    """Factory function used by the app lifespan and the CLI."""
    return RecordStore(settings=settings or get_settings())
