import logging
import sys
import structlog


def configure_logging(env: str = "dev") -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if env == "prod":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.WARNING if env == "prod" else logging.INFO,
    )


def bind_phase(phase_id: int, **extra) -> None:
    """Attach phase context to every log line emitted until cleared."""
    structlog.contextvars.bind_contextvars(phase_id=phase_id, **extra)


def clear_bound() -> None:
    structlog.contextvars.clear_contextvars()


logger = structlog.get_logger()
