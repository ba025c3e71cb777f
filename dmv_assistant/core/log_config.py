import logging
import sys

from dmv_assistant.core.config import settings

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "hpack", "pdfminer")


def setup_logging(level: str | None = None) -> None:
    """Configure root logging once for the whole process."""
    log_level = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging configured - level: %s", log_level)
