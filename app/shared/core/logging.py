import sys
import structlog
import logging
from app.shared.core.config import get_settings

def sensitive_field_redactor(logger, method_name, event_dict):
    """
    Redact credentials and client identifiers from logs.
    Access-log rows carry client IPs; those must never reach telemetry.
    """
    sensitive_fields = {
        "token", "password", "secret", "authorization", "jwt_secret",
        "client_ip", "email",
    }

    for field in sensitive_fields:
        if field in event_dict:
            event_dict[field] = "[REDACTED]"

    for container in ["metadata", "payload", "details", "extra"]:
        if container in event_dict and isinstance(event_dict[container], dict):
            # Copy first: containers are often live objects such as exc.details
            redacted = dict(event_dict[container])
            for field in sensitive_fields:
                if field in redacted:
                    redacted[field] = "[REDACTED]"
            event_dict[container] = redacted

    return event_dict

def setup_logging():
    settings = get_settings()

    # 1. Choose the renderer based on environment
    if settings.DEBUG:
        renderer = structlog.dev.ConsoleRenderer()
        min_level = logging.DEBUG
    else:
        renderer = structlog.processors.JSONRenderer()
        min_level = logging.INFO

    # 2. Processor pipeline
    processors = [
        structlog.contextvars.merge_contextvars, # request_id from RequestIDMiddleware
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        sensitive_field_redactor,
        renderer
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # 3. Route stdlib logging (uvicorn, sqlalchemy) to the same stream.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=min_level,
    )
