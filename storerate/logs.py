import datetime
import json
import logging

APP_LOGGER = "storerate"


class JsonConsoleFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp"  : datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level"      : record.levelname,
            "logger"     : record.name,
            "file"       : f"{record.filename}:{record.lineno}",
            "status_code": getattr(record, "status_code", None),
            "msg"        : record.getMessage(),
        }
        if record.exc_info:
            log["exc"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO") -> logging.Logger:
    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(level)
    if not app_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(JsonConsoleFormatter())
        app_logger.addHandler(console_handler)
    return app_logger


class EndpointFilter(logging.Filter):
    """Keep health probes out of the uvicorn access log."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "GET /health" not in record.getMessage()
