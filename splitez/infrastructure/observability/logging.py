"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Iterable
from pythonjsonlogger import jsonlogger
from splitez.config import settings


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
    handler.setFormatter(CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s"))
    logger.addHandler(handler)


def log_expense_recorded(
    request_id: str,
    account_id: str,
    expense_id: str,
    group_id: str,
    settlement_count: int,
    duration_ms: float,
) -> None:
    """Log structured expense outcome"""
    logging.info(
        "Expense recorded",
        extra={
            "request_id": request_id,
            "account_id": account_id,
            "expense_id": expense_id,
            "group_id": group_id,
            "step": "expense_complete",
            "settlement_count": settlement_count,
            "duration_ms": duration_ms,
        },
    )


def log_membership_resolution(
    group_id: str,
    promoted: Iterable[str],
    added_members: Iterable[str],
    failed: Iterable[str],
) -> None:
    """Log promotions; failed lookups are logged at warning level"""
    failed = sorted(failed)
    logging.log(
        logging.WARNING if failed else logging.INFO,
        "Membership resolved",
        extra={
            "group_id": group_id,
            "step": "membership_resolution",
            "promoted_count": len(list(promoted)),
            "added_member_count": len(list(added_members)),
            "failed_emails": failed,
        },
    )


def log_settlement_paid(settlement_id: str, debtor_id: str, channel: str, transitioned: bool) -> None:
    logging.info(
        "Settlement marked paid" if transitioned else "Settlement already paid",
        extra={
            "settlement_id": settlement_id,
            "debtor_id": debtor_id,
            "channel": channel,
            "step": "settlement_paid",
        },
    )
