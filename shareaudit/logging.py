"""Structured logging configuration for ShareAudit."""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

from .config import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure structured logging for ShareAudit."""
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level_name, logging.INFO),
        force=True,
    )

    # Configure structlog
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_scan_event(
    logger: structlog.stdlib.BoundLogger,
    phase: str,
    site_id: Optional[str] = None,
    drive_id: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """Log a scan event with traversal context."""
    log_data: Dict[str, Any] = {"phase": phase}

    if site_id is not None:
        log_data["site_id"] = site_id
    if drive_id is not None:
        log_data["drive_id"] = drive_id

    log_data.update(kwargs)

    logger.info(f"scan.{phase}", **log_data)


def log_remediation_event(
    logger: structlog.stdlib.BoundLogger,
    action: str,
    status: str,
    resource: Optional[str] = None,
    dry_run: bool = False,
    **kwargs: Any,
) -> None:
    """Log a remediation event with standardized fields."""
    log_data: Dict[str, Any] = {
        "action": action,
        "status": status,
        "dry_run": dry_run,
    }

    # Only the idempotency key is logged, never link URLs
    if resource is not None:
        log_data["resource"] = resource

    log_data.update(kwargs)

    if status == "failed":
        logger.warning(f"remediation.{status}", **log_data)
    else:
        logger.info(f"remediation.{status}", **log_data)


# Initialize logging on module import
setup_logging()
