from __future__ import annotations

import logging
import logging.config
import re

_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


class EmailRedactingFilter(logging.Filter):
    """Masks e-mail addresses in log messages and arguments."""

    @staticmethod
    def _redact(value: object) -> object:
        if isinstance(value, str):
            return _EMAIL_RE.sub("[REDACTED]", value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self._redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(self._redact(a) for a in record.args)
        elif isinstance(record.args, dict):
            record.args = {k: self._redact(v) for k, v in record.args.items()}
        return True


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"redact_email": {"()": EmailRedactingFilter}},
            "formatters": {
                "default": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["redact_email"],
                }
            },
            "root": {"level": str(level or "INFO").upper(), "handlers": ["console"]},
            "loggers": {
                "httpx": {"level": "WARNING"},
                "botocore": {"level": "WARNING"},
            },
        }
    )
