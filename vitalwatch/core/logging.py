import logging
import logging.config
import sys
from typing import Any, Dict, List

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration

from vitalwatch.core.config import Settings, settings

# stdlib loggers that get their own handler instead of propagating to root
_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def _engine_context(config: Settings) -> structlog.types.Processor:
    """Stamp every event with the service name and environment."""

    def processor(
        logger: Any, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", config.PROJECT_NAME)
        event_dict.setdefault("environment", config.ENVIRONMENT)
        return event_dict

    return processor


def _traces_sample_rate(config: Settings) -> float:
    if config.SENTRY_TRACES_SAMPLE_RATE is not None:
        return config.SENTRY_TRACES_SAMPLE_RATE
    return 1.0 if config.ENVIRONMENT == "local" else 0.1


def _init_sentry(config: Settings) -> None:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.ENVIRONMENT,
        traces_sample_rate=_traces_sample_rate(config),
        # tick failures and subscriber crashes are logged at error level
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
    )
    sentry_sdk.set_tag("tick_seconds", config.MONITORING_TICK_SECONDS)


def setup_logging(config: Settings = settings) -> None:
    """
    Configure structlog for the monitoring engine.

    Console rendering in `local`/`dev`, JSON elsewhere. Events carry the
    service name plus whatever the tick loop binds (`tick`, `patient_id`).
    Sentry is enabled only when `SENTRY_DSN` is set.
    """
    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _engine_context(config),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if config.SENTRY_DSN:
        _init_sentry(config)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.dev.ConsoleRenderer()
        if config.ENVIRONMENT in ["local", "dev"]
        else structlog.processors.JSONRenderer()
    )

    server_levels = {
        "uvicorn": "INFO",
        "uvicorn.error": "INFO",
        "uvicorn.access": config.UVICORN_ACCESS_LOG_LEVEL,
    }
    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structlog": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "level": config.LOG_LEVEL,
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "structlog",
            },
        },
        "loggers": {
            "": {"handlers": ["stdout"], "level": config.LOG_LEVEL},
            **{
                name: {"handlers": ["stdout"], "level": server_levels[name], "propagate": False}
                for name in _SERVER_LOGGERS
            },
        },
    }

    logging.config.dictConfig(logging_config)
