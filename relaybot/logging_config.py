"""
Logging setup shared by the bot, the web server and the CLI.

Credentials travel in Authorization headers and slash-command options, so
every handler installed here masks token-looking values before they are
written out.
"""

import logging
import os
import re
import sys


class SensitiveDataFilter(logging.Filter):
    """Mask credentials in log records."""

    PATTERNS = [
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r"\1***MASKED***"),
        (re.compile(r'(authorization["\']?\s*[:=]\s*["\']?)([^"\'}\s,]+)', re.IGNORECASE), r"\1***MASKED***"),
        (re.compile(r"(bearer\s+)([^\s,}'\"]+)", re.IGNORECASE), r"\1***MASKED***"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._mask(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._mask(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._mask(arg) for arg in record.args)
        return True

    def _mask(self, value):
        if isinstance(value, str):
            for pattern, replacement in self.PATTERNS:
                value = pattern.sub(replacement, value)
        return value


def setup_logging(log_level: str | None = None) -> logging.Logger:
    """
    Configure the root logger once per process.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to the LOG_LEVEL
            env var, then INFO.

    Returns:
        The root logger.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    if any(isinstance(f, SensitiveDataFilter) for h in root.handlers for f in h.filters):
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler.addFilter(SensitiveDataFilter())
    root.addHandler(handler)

    # discord.py is chatty at INFO about gateway events
    logging.getLogger("discord").setLevel(max(level, logging.WARNING))
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
