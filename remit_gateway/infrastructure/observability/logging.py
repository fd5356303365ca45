"""Structured JSON logging for transfer lifecycle events"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

logger = logging.getLogger("remit_gateway.transfers")


class TransferJsonFormatter(jsonlogger.JsonFormatter):
    """JSON lines stamped with UTC time, level and the emitting service"""

    def __init__(self, *args: Any, service: str = "remit-gateway", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.service = service

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service


def setup_logging(level: str = "INFO", service: str = "remit-gateway") -> None:
    """Route every logger through one stdout JSON handler"""
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(TransferJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s", service=service))
    root.addHandler(handler)


def log_transfer_event(
    message: str,
    transfer_id: str,
    step: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Log a transfer lifecycle event with its identifiers"""
    logger.log(level, message, extra={"transfer_id": transfer_id, "step": step, **fields})


def log_status_change(
    transfer_id: str,
    tracking_number: str,
    from_status: Optional[str],
    to_status: str,
    reason: Optional[str] = None,
) -> None:
    """Audit line for one state machine transition"""
    logger.info(
        "Transfer status changed",
        extra={
            "transfer_id": transfer_id,
            "tracking_number": tracking_number,
            "step": "status_change",
            "from_status": from_status,
            "to_status": to_status,
            "reason": reason,
        },
    )
