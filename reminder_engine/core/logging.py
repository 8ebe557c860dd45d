import logging
import logging.config
import re

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
SECRET_PATTERN = re.compile(r"(?i)((?:smtp_)?password\s*[=:]\s*)([^,\s]+)")


class RecipientSafeFilter(logging.Filter):
    """Strip recipient addresses and SMTP secrets from every log record."""

    def _sanitize(self, value: object) -> object:
        if not isinstance(value, str):
            return value
        redacted = SECRET_PATTERN.sub(r"\1[REDACTED]", value)
        return EMAIL_PATTERN.sub("[REDACTED]", redacted)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._sanitize(record.msg)

        if isinstance(record.args, tuple):
            record.args = tuple(self._sanitize(item) for item in record.args)
        elif isinstance(record.args, dict):
            record.args = {key: self._sanitize(value) for key, value in record.args.items()}

        return True


def setup_logging() -> None:
    from reminder_engine.core.settings import get_settings

    settings = get_settings()
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "recipient_safe": {
                    "()": "reminder_engine.core.logging.RecipientSafeFilter",
                }
            },
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["recipient_safe"],
                }
            },
            "loggers": {
                "": {
                    "handlers": ["console"],
                    "level": settings.log_level.upper(),
                },
                "uvicorn.access": {
                    "handlers": ["console"],
                    "level": "WARNING",
                    "propagate": False,
                },
            },
        }
    )
