import logging
import logging.handlers
import os
import re
from datetime import datetime
from functools import lru_cache
from pathlib import Path

from app.config.settings import settings

SENSITIVE_KEY_PATTERN = re.compile(
    r"password|secret|token|descriptor|authorization", re.IGNORECASE
)
_BEARER_PATTERN = re.compile(r"(?i)bearer\s+[A-Za-z0-9\-_.=]+")
_JWT_PATTERN = re.compile(r"eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+")


class RedactionFilter(logging.Filter):
    """Masks bearer credentials and encoded JWTs in rendered log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _JWT_PATTERN.sub("[REDACTED]", _BEARER_PATTERN.sub("Bearer [REDACTED]", message))
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class DailyRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Midnight rotation that names rotated files with a timestamp suffix."""

    def rotation_filename(self, default_name):
        base, ext = os.path.splitext(self.baseFilename)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M")
        return f"{base}-{timestamp}{ext}"

    def getFilesToDelete(self):
        """Keep only the newest `backupCount` rotated files."""
        dir_name = os.path.dirname(self.baseFilename)
        base_name = os.path.basename(self.baseFilename)
        stem, ext = os.path.splitext(base_name)
        pattern = re.compile(
            rf"^{re.escape(stem)}-\d{{4}}-\d{{2}}-\d{{2}}-\d{{2}}-\d{{2}}{re.escape(ext)}$"
        )
        rotated = sorted(
            os.path.join(dir_name, fn) for fn in os.listdir(dir_name) if pattern.match(fn)
        )
        if len(rotated) <= self.backupCount:
            return []
        return rotated[: len(rotated) - self.backupCount]


def scrub(context: dict) -> dict:
    """Drop values whose key names a secret or biometric payload."""
    return {k: v for k, v in context.items() if not SENSITIVE_KEY_PATTERN.search(k)}


class AppLogger:
    """Singleton logger with short method names and built-in configuration."""

    __instance = None

    def __new__(cls):
        if cls.__instance is None:
            instance = super(AppLogger, cls).__new__(cls)
            instance._setup_logger()
            cls.__instance = instance
        return cls.__instance

    def _setup_logger(self) -> None:
        self._service_name: str = settings.SERVICE_NAME
        self.log_dir: Path = Path(settings.LOG_DIR)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_level: int = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

        self.logger = logging.getLogger(self._service_name.upper())
        self.logger.setLevel(self.log_level)

        if self.logger.handlers:
            return

        redaction = RedactionFilter()

        detailed_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        simple_formatter = logging.Formatter(
            "%(asctime)s - %(levelname)s - %(message)s", datefmt="%H:%M:%S"
        )

        file_handler = DailyRotatingFileHandler(
            self.log_dir / f"{self._service_name}.log",
            when="midnight",
            interval=1,
            backupCount=settings.LOG_MAX_DAYS,
            encoding="utf-8",
        )
        file_handler.setLevel(self.log_level)
        file_handler.setFormatter(detailed_formatter)
        file_handler.addFilter(redaction)
        self.logger.addHandler(file_handler)

        if settings.LOG_TO_STDOUT:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(self.log_level)
            console_handler.setFormatter(simple_formatter)
            console_handler.addFilter(redaction)
            self.logger.addHandler(console_handler)

    def crit(self, msg: str, exc_info: bool = False) -> None:
        return self.logger.critical(msg=msg, exc_info=exc_info)

    def bug(self, msg: str, exc_info: bool = False) -> None:
        return self.logger.debug(msg=msg, exc_info=exc_info)

    def err(self, msg: str, exc_info: bool = False) -> None:
        return self.logger.error(msg=msg, exc_info=exc_info)

    def info(self, msg: str, exc_info: bool = False) -> None:
        return self.logger.info(msg=msg, exc_info=exc_info)

    def warn(self, msg: str, exc_info: bool = False) -> None:
        return self.logger.warning(msg=msg, exc_info=exc_info)

    def exception(self, exc: Exception, context: str = "") -> None:
        """Log an exception with its traceback."""
        context_msg = f" in {context}" if context else ""
        self.logger.error(
            f"Exception occurred{context_msg}: {type(exc).__name__}: {exc}",
            exc_info=True,
        )

    def perf(self, operation: str, duration: float, **context) -> None:
        context_str = ", ".join([f"{k}={v}" for k, v in scrub(context).items()])
        self.logger.info(
            f"Performance: {operation} took {duration:.3f}s ({context_str})"
        )

    def event(self, action: str, outcome: str, **context) -> None:
        """Log one audit event line; sensitive keys never reach the handlers."""
        context_str = ", ".join([f"{k}={v}" for k, v in scrub(context).items()])
        level = logging.INFO if outcome == "success" else logging.WARNING
        self.logger.log(level, f"Audit: {action} [{outcome}] ({context_str})")


@lru_cache()
def get_logger() -> AppLogger:
    return AppLogger()


log = get_logger()
