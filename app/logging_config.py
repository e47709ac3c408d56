import json, logging, os, sys
from datetime import datetime, timezone

# Extra attributes copied from LogRecord into the JSON payload when present
_EXTRA_KEYS = ("request_id", "route", "method", "status", "remote_addr",
               "provider", "identifier", "principal", "action", "details")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k in _EXTRA_KEYS:
            if hasattr(record, k):
                payload[k] = getattr(record, k)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(log_file: str | None = None, log_level: str | None = None):
    """Route root logging through the JSON formatter.

    Args:
        log_file: Append-mode log file. Defaults to GATEWAY_LOG_FILE; an
            empty value disables the file handler.
        log_level: Defaults to GATEWAY_LOG_LEVEL or INFO.
    """
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    handlers = [console_handler]

    log_file = log_file if log_file is not None else os.getenv("GATEWAY_LOG_FILE", "zkpass_gateway.log")
    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a')
        file_handler.setFormatter(JsonFormatter())
        handlers.append(file_handler)

    root = logging.getLogger()
    log_level = (log_level or os.getenv("GATEWAY_LOG_LEVEL", "INFO")).upper()
    root.setLevel(getattr(logging, log_level, logging.INFO))
    root.handlers = handlers
