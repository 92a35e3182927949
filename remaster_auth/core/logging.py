"""structlog configuration.

Called once from create_app(). Token material must never reach the logs,
so a redaction processor masks any event key that looks like a credential.
"""

import logging
from typing import Any

import structlog

_SENSITIVE_KEYS = ("password", "secret", "token", "authorization", "cookie")
_SENSITIVE_EXACT = frozenset({"code", "presented_code"})
_HANDLER_NAME = "remaster_auth"


def _redact_sensitive(
    _logger: Any, _method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask values of credential-like keys."""
    for key in list(event_dict):
        if key == "event":
            continue
        lowered = key.lower()
        if lowered in _SENSITIVE_EXACT or any(m in lowered for m in _SENSITIVE_KEYS):
            event_dict[key] = "***"
    return event_dict


def configure_logging(log_level: str = "INFO", *, json_output: bool = False) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    Records from ``logging.getLogger(__name__)`` in core helpers pass
    through ProcessorFormatter, so they get the same timestamps, redaction
    and JSON or console rendering as structlog events.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        json_output: Render JSON lines (production) instead of console output.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_sensitive,
        structlog.processors.StackInfoRenderer(),
    ]
    rendering: list[Any] = (
        [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        if json_output
        else [structlog.dev.ConsoleRenderer()]
    )
    processors = shared + rendering

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdlib records: copy extras into the event dict, then the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.ExtraAdder(),
            *shared,
        ],
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta]
        + rendering,
    )
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    # Replace our own handler on reconfiguration, leave any others alone
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
