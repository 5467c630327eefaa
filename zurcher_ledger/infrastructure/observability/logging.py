"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = "zurcher-ledger"


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


def log_payment_recorded(
    request_id: Optional[str],
    obligation_id: int,
    payment_id: int,
    amount: Decimal,
    paid_amount: Decimal,
    status: str,
    attachment_stored: bool,
) -> None:
    """Log structured payment outcome for audit"""
    logging.info(
        "Payment recorded",
        extra={
            "request_id": request_id,
            "obligation_id": obligation_id,
            "payment_id": payment_id,
            "step": "payment_recorded",
            "amount": str(amount),
            "paid_amount": str(paid_amount),
            "payment_status": status,
            "attachment_stored": attachment_stored,
        },
    )


def log_payment_reversed(
    request_id: Optional[str],
    obligation_id: int,
    payment_id: int,
    amount: Decimal,
    paid_amount: Decimal,
    clamped: bool,
) -> None:
    logging.info(
        "Payment reversed",
        extra={
            "request_id": request_id,
            "obligation_id": obligation_id,
            "payment_id": payment_id,
            "step": "payment_reversed",
            "amount": str(amount),
            "paid_amount": str(paid_amount),
            "clamped": clamped,
        },
    )


def log_credit_posting(
    request_id: Optional[str],
    account: str,
    transaction_id: int,
    transaction_type: str,
    amount: Decimal,
    balance_after: Decimal,
    charges_touched: int = 0,
) -> None:
    logging.info(
        "Credit account posting",
        extra={
            "request_id": request_id,
            "account": account,
            "transaction_id": transaction_id,
            "step": f"credit_{transaction_type}",
            "amount": str(amount),
            "balance_after": str(balance_after),
            "charges_touched": charges_touched,
        },
    )
