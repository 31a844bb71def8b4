import logging
import sys
from urllib.parse import urlsplit, urlunsplit

from pythonjsonlogger import jsonlogger

from predsync.core.config import get_settings

# Transport loggers echo request URLs, and signed URLs carry credentials in
# their query strings.
SIGNED_URL_LOGGERS = ("httpx", "httpcore")
QUIET_LOGGERS = SIGNED_URL_LOGGERS + ("apscheduler",)
QUIET_LEVEL = logging.WARNING


def quiet_library_loggers(names: tuple[str, ...] = QUIET_LOGGERS) -> None:
    for name in names:
        logging.getLogger(name).setLevel(QUIET_LEVEL)


def redact_url(url: str | None) -> str | None:
    """Drop the query string and fragment so a signed URL is safe to log."""
    if not url:
        return url
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def setup_logging() -> None:
    settings = get_settings()
    quiet_library_loggers()
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root_logger.setLevel(settings.log_level.upper())
    root_logger.addHandler(handler)
