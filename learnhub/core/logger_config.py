"""
Logging setup: JSON lines in deployed environments, plain text locally.
"""
import logging
import sys
from pythonjsonlogger.json import JsonFormatter

from learnhub.core.config import settings

TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class ServiceJsonFormatter(JsonFormatter):
    """JSON formatter that stamps every record with service context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['service'] = 'learnhub'
        log_record['environment'] = settings.ENVIRONMENT


def setup_logging(log_level: str | None = None, log_format: str | None = None) -> logging.Logger:
    """
    Configure the root logger once for the whole process.

    Args:
        log_level: overrides ``settings.log_level()``
        log_format: 'json' or 'text', overrides ``settings.LOG_FORMAT``
    """
    level = (log_level or settings.log_level()).upper()
    fmt = (log_format or settings.LOG_FORMAT).lower()

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(ServiceJsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    logging.basicConfig(level=getattr(logging, level, logging.INFO), handlers=[handler], force=True)
    # SQL echo is controlled by DATABASE_ECHO, keep the engine logger quiet otherwise
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    return logging.getLogger("learnhub")
