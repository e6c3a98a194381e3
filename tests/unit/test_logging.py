import pytest
import structlog

from tenant_gateway.config_constants import LogFormat
from tenant_gateway.utils.logging import (
    _add_module_info,
    _processors,
    _redact_secrets,
    configure_logging,
    get_logger,
    get_module_logger,
    truncate_sql,
)
from tenant_gateway.utils.tracing import current_trace_id, elapsed_ms, generate_trace_id, get_trace_id, set_trace_id, start_timer


def test_logger_configuration():
    configure_logging()
    logger = get_logger("test")
    assert logger is not None


def test_trace_id_generation():
    trace_id = generate_trace_id()
    assert len(trace_id) == 36  # UUID format
    assert '-' in trace_id


def test_trace_id_context():
    test_id = "test-trace-123"
    set_trace_id(test_id)
    assert current_trace_id() == test_id
    assert get_trace_id() == test_id


def test_elapsed_ms_is_non_negative():
    assert elapsed_ms(start_timer()) >= 0


def test_secrets_are_redacted():
    event = {"event": "connecting", "password": "hunter2", "dsn": "postgresql://u:p@h/db", "host": "10.0.0.7"}

    redacted = _redact_secrets(None, "info", event)

    assert redacted["password"] == "***"
    assert redacted["dsn"] == "***"
    assert redacted["host"] == "10.0.0.7"


@pytest.mark.parametrize("length, expected_length", [(10, 10), (200, 200), (450, 203)])
def test_truncate_sql(length, expected_length):
    assert len(truncate_sql("x" * length)) == expected_length


def test_console_format_uses_console_renderer():
    processors = _processors(LogFormat.CONSOLE)

    assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
    assert processors.index(_redact_secrets) < len(processors) - 1


def test_module_info_shortens_package_loggers():
    event = _add_module_info(None, "info", {"logger": "tenant_gateway.services.tenant_locator"})
    assert event["module"] == "services.tenant_locator"

    event = _add_module_info(None, "info", {"logger": "uvicorn.error"})
    assert event["module"] == "uvicorn.error"


def test_module_logger_is_named_after_caller():
    logger = get_module_logger()
    assert logger is not None
