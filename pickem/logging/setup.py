import sys
import logging
from typing import Any, Optional

from loguru import logger

from pickem.config.settings import AppSettings, get_settings

MASK = "********"

# Secrets currently registered with the masking filter
_secrets: list = []


def _mask_secret_value(value: str) -> str:
    if len(value) > 8:
        return value[:4] + "****" + value[-4:]
    return MASK


def sensitive_data_filter(record: dict[str, Any]) -> bool:
    """Filter function to mask sensitive data in log records."""
    sensitive_keys = ["key", "token", "password", "secret"]

    # Mask values of extra fields whose names look sensitive
    extra = record.get("extra")
    if isinstance(extra, dict):
        for extra_key, extra_value in extra.items():
            if any(sk in extra_key.lower() for sk in sensitive_keys):
                if isinstance(extra_value, str):
                    extra[extra_key] = _mask_secret_value(extra_value)
                else:
                    extra[extra_key] = MASK

    # Known secrets never appear verbatim in a message
    for secret in _secrets:
        if secret in record["message"]:
            record["message"] = record["message"].replace(secret, MASK)

    return True  # Keep the record after filtering/masking


class InterceptHandler(logging.Handler):
    """Routes standard logging records (httpx, postgrest, ...) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(settings: Optional[AppSettings] = None) -> None:
    """Configures Loguru logger based on application settings."""
    settings = settings or get_settings()

    _secrets.clear()
    _secrets.extend(
        s
        for s in (
            settings.supabase_service_role_key,
            settings.cron_secret,
            settings.webhook_secret,
        )
        if s
    )

    logger.remove()  # Remove default handler

    # Basic console logging
    logger.add(
        sys.stderr,  # Output to standard error
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=True,  # Better tracebacks
        diagnose=False,  # No local variable values in tracebacks
        filter=sensitive_data_filter,  # Apply the filter to mask sensitive data
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    # httpx logs every request at INFO; keep it at WARNING unless debugging
    if settings.log_level != "DEBUG":
        logging.getLogger("httpx").setLevel(logging.WARNING)

    logger.debug(f"Logging initialized with level: {settings.log_level}")
