"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from warrantyhub.config import settings

logger = logging.getLogger("warrantyhub")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    root = logging.getLogger()
    root.setLevel(level)

    # Remove existing handlers
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    handler.setFormatter(formatter)
    root.addHandler(handler)


def log_transition(
    kind: str,
    record_id: str,
    from_state: str,
    to_state: str,
    actor_id: Optional[str] = None,
    backend: Optional[str] = None,
) -> None:
    """Log a persisted lifecycle change"""
    logger.info(
        "Lifecycle update persisted",
        extra={
            "kind": kind,
            "record_id": record_id,
            "from_state": from_state,
            "to_state": to_state,
            "actor_id": actor_id,
            "backend": backend,
        },
    )


def log_rejected_update(kind: str, record_id: str, reason: str, detail: str) -> None:
    logger.warning(
        "Lifecycle update rejected",
        extra={"kind": kind, "record_id": record_id, "reason": reason, "detail": detail},
    )


def log_dropped_records(kind: str, dropped: int, storage_key: str) -> None:
    """Malformed stored records excluded from reads; storage_key is the embedded key or remote table"""
    logger.warning(
        "Dropped malformed stored records",
        extra={"kind": kind, "dropped": dropped, "storage_key": storage_key},
    )
