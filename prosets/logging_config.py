"""
Logging configuration.

Production emits one JSON object per line. Marketplace identifiers passed
through ``extra=`` (order, asset, user, Stripe event) become top-level
keys so settlement and download trails can be filtered per order.
Development keeps plain text.
"""

import sys
import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict

from prosets.config import settings

CONTEXT_FIELDS = ("order_id", "asset_id", "user_id", "event_id", "event_type")

# Chatty below WARNING: access logs, SQL echo and the SDKs' HTTP traces
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "botocore", "boto3", "urllib3", "stripe")


class JSONFormatter(logging.Formatter):
    """Format records as JSON, lifting marketplace context to the top level."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": settings.app_name,
            "env": settings.app_env,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = str(value)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


def configure_logging():
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO if settings.is_production else logging.DEBUG)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if settings.is_production:
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
