import logging
import os
from pathlib import Path
from typing import Iterable, Optional


REDACTED = "***"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# urllib3 logs every connection at DEBUG, including full URLs
NOISY_LOGGERS = ("urllib3", "requests")


class RedactingFilter(logging.Filter):
    """
    Masks known secret values (e.g. the bank password) in the rendered message of every record.

    Exception tracebacks are rendered by the formatter, so `exc_text` is masked as well once available.
    """

    def __init__(self, secrets: Iterable[str] = ()) -> None:
        super().__init__()
        # Longest first so a secret containing another is masked whole.
        self._secrets = sorted({s for s in secrets if s}, key=len, reverse=True)

    def redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self._secrets:
            return True
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = self.redact(record.exc_text)
        return True


def configure_logging(level: str = "INFO", file_path: Optional[str] = None, secrets: Iterable[str] = ()) -> None:
    numeric_level = getattr(logging, (level or "INFO").upper(), logging.INFO)

    redactor = RedactingFilter(secrets)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))
    for handler in handlers:
        handler.addFilter(redactor)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,  # the CLI configures once from env, then again from config
    )

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(os.getenv("NOISY_LOG_LEVEL", "WARNING"))
