import json
import logging
import sys
from datetime import datetime, timezone

from rich.logging import RichHandler

LOGGER_NAME = "sqlserver_output"

# Driver loggers that are noisy below WARNING
THIRD_PARTY_LOGGERS = [
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "pyodbc",
]


class StructuredLogger:
    """Logger that supports both human-readable and JSON output with secret redaction."""

    def __init__(self, structured: bool = False, level: str = "INFO"):
        self._secrets = set()
        self.logger = logging.getLogger(LOGGER_NAME)
        self.configure(structured=structured, level=level)

    def configure(self, structured: bool = False, level: str = "INFO") -> None:
        """Switch output mode and level in place, keeping registered secrets."""
        self.structured = structured
        self.level = getattr(logging, level.upper(), logging.INFO)
        self.logger.setLevel(self.level)

        if not self.structured:
            self._install_handler(
                RichHandler(rich_tracebacks=True, markup=False, show_path=False)
            )
        else:
            self._install_handler(logging.StreamHandler(sys.stdout))

        third_party_level = max(self.level, logging.WARNING)
        for logger_name in THIRD_PARTY_LOGGERS:
            logging.getLogger(logger_name).setLevel(third_party_level)

    def _install_handler(self, handler: logging.Handler) -> None:
        """Replace handlers installed by a previous StructuredLogger."""
        for existing in self.logger.handlers[:]:
            if getattr(existing, "_sqlserver_output", False):
                self.logger.removeHandler(existing)
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler._sqlserver_output = True
        self.logger.addHandler(handler)
        self.logger.propagate = False

    def register_secret(self, secret: str):
        """Register a secret string to be redacted from logs."""
        if secret and isinstance(secret, str) and len(secret.strip()) > 0:
            self._secrets.add(secret)

    def _redact(self, text: str) -> str:
        """Redact registered secrets from text."""
        if not text or not self._secrets:
            return text

        for secret in self._secrets:
            if secret in text:
                text = text.replace(secret, "[REDACTED]")
        return text

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)

    def _log(self, level: str, message: str, **kwargs):
        level_val = getattr(logging, level, logging.INFO)
        if level_val < self.level:
            return

        message = self._redact(str(message))

        redacted_kwargs = {}
        for k, v in kwargs.items():
            if isinstance(v, str):
                redacted_kwargs[k] = self._redact(v)
            else:
                redacted_kwargs[k] = v

        if self.structured:
            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "level": level,
                "message": message,
                **redacted_kwargs,
            }
            print(json.dumps(log_entry, default=str))
            return

        context_str = ""
        if redacted_kwargs:
            context_items = [f"{k}={v}" for k, v in redacted_kwargs.items()]
            context_str = f" ({', '.join(context_items)})"

        formatted_msg = f"{message}{context_str}"

        if level == "INFO":
            self.logger.info(formatted_msg)
        elif level == "WARNING":
            self.logger.warning(f"[WARN] {formatted_msg}")
        elif level == "ERROR":
            self.logger.error(f"[ERROR] {formatted_msg}")
        elif level == "DEBUG":
            self.logger.debug(f"[DEBUG] {formatted_msg}")


# Global instance, reconfigured in place by configure_logging
logger = StructuredLogger()


def configure_logging(structured: bool, level: str) -> StructuredLogger:
    """Configure the global logger."""
    logger.configure(structured=structured, level=level)
    return logger
