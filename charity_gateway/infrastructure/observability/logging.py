"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict
from pythonjsonlogger import jsonlogger

from charity_gateway.config import settings


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

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_batch_outcome(
    request_id: str,
    batch_id: str,
    action: str,
    total: int,
    success: int,
    failed: int,
    duration_ms: float,
) -> None:
    """Log structured batch moderation outcome for analysis"""
    logging.info(
        "Batch moderation completed",
        extra={
            "request_id": request_id,
            "batch_id": batch_id,
            "step": "batch_complete",
            "action": action,
            "total": total,
            "success": success,
            "failed": failed,
            "duration_ms": duration_ms,
        },
    )
