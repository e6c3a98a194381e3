import inspect
import json
import logging
from typing import Any, List

import structlog

from tenant_gateway.config import get_settings
from tenant_gateway.config_constants import LogFormat

_logging_configured = False

# Event keys whose values must never reach a log sink
_REDACTED_KEYS = frozenset({"password", "dsn", "encryption_key", "secret"})

_PACKAGE_PREFIX = "tenant_gateway."


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Add a short 'module' field next to the full logger name.

    "tenant_gateway.services.tenant_locator" -> "services.tenant_locator";
    loggers outside the package keep their full name.
    """
    logger_name = event_dict.get("logger", "unknown")
    if logger_name.startswith(_PACKAGE_PREFIX):
        event_dict["module"] = ".".join(logger_name.split(".")[-2:])
    else:
        event_dict["module"] = logger_name
    return event_dict


def _redact_secrets(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """Replace credential-bearing fields with a placeholder."""
    for key in _REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def _pretty_json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def _processors(log_format: LogFormat) -> List[Any]:
    renderer = (
        structlog.dev.ConsoleRenderer(colors=False)
        if log_format is LogFormat.CONSOLE
        else _pretty_json_renderer
    )
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        # Redaction must run before anything renders the event
        _redact_secrets,
        _add_module_info,
        renderer,
    ]


def configure_logging() -> None:
    """
    Configure stdlib logging and structlog from AppConfig.

    Safe to call more than once; only the first call has an effect.
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    app_config = get_settings().app

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, app_config.log_level.value),
        handlers=[logging.StreamHandler()],
    )

    structlog.configure(
        processors=_processors(app_config.log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Tenant located", instance_id="...", trace_id="abc-123")
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """Logger named after the calling module ('unknown' if the frame is unavailable)."""
    frame = inspect.currentframe()
    try:
        caller = frame.f_back if frame is not None else None
        module_name = caller.f_globals.get("__name__", "unknown") if caller is not None else "unknown"
    finally:
        del frame
    return get_logger(module_name)


def truncate_sql(sql: str, limit: int = 200) -> str:
    """Shorten SQL text for log lines."""
    return sql if len(sql) <= limit else sql[:limit] + "..."
