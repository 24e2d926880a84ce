import logging
from typing import Any, MutableMapping

import structlog

# Event fields that may carry credentials or entity attributes.
REDACTED_KEYS = frozenset({"attributes", "password", "token", "identity_token"})
REDACTED = "***"


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask credential-bearing fields, including inside nested dicts."""

    def _scrub(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: REDACTED if k in REDACTED_KEYS else _scrub(v) for k, v in value.items()
            }
        return value

    for key, value in list(event_dict.items()):
        event_dict[key] = REDACTED if key in REDACTED_KEYS else _scrub(value)
    return event_dict


def configure_logging(level: int | str = logging.INFO, fmt: str = "json") -> None:
    """Configure the structlog/standard logging bridge.

    ``fmt`` is ``"json"`` for machine-readable output or ``"console"`` for
    a human-readable renderer during local bootstrap runs.
    """

    renderer: Any
    if fmt == "console":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=level, format="%(message)s")


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Logger carrying per-run fields such as ``run_id``."""
    return structlog.get_logger().bind(**kwargs)
