"""
Structured Logging with Correlation IDs

Every record emitted while a review session is being worked on carries:
- review_session_id: the review the operator has open
- route_id: the collection route of the scanned report
- business_date: the reporting day of the scanned report
- stage: which step produced the log (open, edit, evaluate, commit)

Usage:
    from core.observability.logging import get_logger, with_correlation

    logger = get_logger(__name__)

    with with_correlation(review_session_id="rev-001", route_id="route-7"):
        logger.info("Gate evaluated", extra_fields={"blocking": 0})
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional


# =============================================================================
# Correlation Context
# =============================================================================

@dataclass(frozen=True)
class CorrelationContext:
    """Identifiers of the review a log line belongs to."""
    review_session_id: Optional[str] = None
    route_id: Optional[str] = None
    business_date: Optional[str] = None
    stage: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def merge(self, **kwargs) -> "CorrelationContext":
        data = self.to_dict()
        data.update({k: v for k, v in kwargs.items() if v is not None})
        return CorrelationContext(**data)


_correlation_context: ContextVar[CorrelationContext] = ContextVar(
    "review_correlation",
    default=CorrelationContext(),
)


def get_correlation_context() -> CorrelationContext:
    return _correlation_context.get()


@contextmanager
def with_correlation(**kwargs):
    """
    Scope correlation IDs to a block. Nested blocks add to the outer
    context and the outer context comes back on exit.

    Usage:
        with with_correlation(review_session_id="rev-001", stage="commit"):
            logger.info("Commit started")
    """
    token = _correlation_context.set(get_correlation_context().merge(**kwargs))
    try:
        yield _correlation_context.get()
    finally:
        _correlation_context.reset(token)


# =============================================================================
# Formatters
# =============================================================================

def _json_default(value: Any) -> Any:
    # Amounts stay exact in log output
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _record_time(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line:

    {"timestamp": "2024-03-05T18:02:11.123Z", "level": "INFO",
     "logger": "reconciliation.session", "message": "Gate evaluated",
     "review_session_id": "rev-001", "stage": "evaluate", "blocking": 0}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": _record_time(record).strftime("%Y-%m-%dT%H:%M:%S.")
            + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_data.update(get_correlation_context().to_dict())
        log_data.update(getattr(record, "extra_fields", None) or {})

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=_json_default, ensure_ascii=False)


class HumanReadableFormatter(logging.Formatter):
    """
    2024-03-05 18:02:11 [INFO ] reconciliation.session [rev-001/route-7/evaluate]: Gate evaluated blocking=0
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_correlation_context()
        parts: List[str] = []
        if ctx.review_session_id:
            parts.append(ctx.review_session_id[:12])
        if ctx.route_id:
            parts.append(ctx.route_id)
        if ctx.stage:
            parts.append(ctx.stage)
        correlation = "/".join(parts) or "-"

        timestamp = _record_time(record).strftime("%Y-%m-%d %H:%M:%S")
        msg = f"{timestamp} [{record.levelname:5}] {record.name} [{correlation}]: {record.getMessage()}"

        extra = getattr(record, "extra_fields", None)
        if extra:
            msg += " " + " ".join(f"{k}={v}" for k, v in extra.items())

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# Logger with Correlation Support
# =============================================================================

class CorrelatedLogger(logging.LoggerAdapter):
    """
    Logger adapter accepting an `extra_fields` dict on every call.

    The fields are attached to the record and rendered by both formatters
    next to the correlation context.
    """

    def __init__(self, logger: logging.Logger):
        super().__init__(logger, {})

    def process(self, msg, kwargs):
        fields = kwargs.pop("extra_fields", None) or {}
        extra = dict(kwargs.get("extra") or {})
        extra["extra_fields"] = fields
        kwargs["extra"] = extra
        return msg, kwargs


# =============================================================================
# Logger Factory
# =============================================================================

_loggers: Dict[str, CorrelatedLogger] = {}
_configured = False

_PACKAGE_LOGGERS = ("reconciliation", "entity_resolver", "connectors", "api", "core")


def configure_logging(
    level: Optional[int] = None,
    json_format: Optional[bool] = None,
):
    """
    Install a stdout handler on the root logger.

    Args:
        level: Logging level (defaults to RECON_LOG_LEVEL)
        json_format: If True, use JSON format (defaults to RECON_LOG_JSON)
    """
    global _configured

    if _configured:
        return

    from core.settings import get_settings

    settings = get_settings()
    if level is None:
        level = logging.getLevelName(settings.log_level)
        if not isinstance(level, int):
            level = logging.INFO
    if json_format is None:
        json_format = settings.log_json

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)

    for name in _PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)

    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> CorrelatedLogger:
    """Correlated logger for `name` (typically __name__). Cached per name."""
    if name not in _loggers:
        if not _configured:
            configure_logging()
        _loggers[name] = CorrelatedLogger(logging.getLogger(name))
    return _loggers[name]


def log_review_event(event: str, **fields):
    """Log an operator action or review lifecycle event."""
    get_logger("reconciliation.review").info(event, extra_fields=fields)
