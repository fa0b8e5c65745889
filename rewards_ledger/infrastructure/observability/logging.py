"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List
from pythonjsonlogger import jsonlogger

from rewards_ledger.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_event_applied(event_type: str, report_id: str, keys: List[str], duration_ms: float) -> None:
    """Log structured outcome of one ledger event"""
    logging.info(
        "Ledger event applied",
        extra={
            "step": "ledger_event_applied",
            "event_type": event_type,
            "report_id": report_id,
            "keys": keys,
            "duration_ms": duration_ms,
        },
    )


def log_clamped(key: str, fields: List[str], delta: Dict[str, int]) -> None:
    """Log a delta that would have driven ledger fields negative"""
    logging.warning(
        "Ledger field clamped at zero",
        extra={"step": "ledger_clamp", "key": key, "fields": fields, "delta": delta},
    )
