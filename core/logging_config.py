import logging
import logging.handlers
import sys
from pathlib import Path
from pythonjsonlogger import jsonlogger


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    Adds the standard fields every log line carries in the JSON files.
    """
    def add_fields(self, log_record, record, message_dict):
        super(CustomJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['timestamp'] = record.created
        log_record['level'] = record.levelname
        log_record['logger'] = record.name        # e.g. 'services.token_service'
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno
        # Set by RequestIDMiddleware; Celery workers have none
        log_record['request_id'] = getattr(record, 'request_id', None)


def _rotating_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(log_level: str = "INFO", log_dir: str = "logs", log_to_file: bool = True):
    """
    Configure application-wide logging.

    Console output is human readable; the files under ``log_dir`` hold JSON
    lines (``tokens.log`` for everything, ``error.log`` for ERROR and above).

    Args:
        log_level: Minimum console level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory where log files will be stored
        log_to_file: Set False for workers/tests that should only log to stdout
    """
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # handlers do the filtering

    # setup_logging may run more than once (app import + celery worker)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    log_path = Path(log_dir)
    if log_to_file:
        log_path.mkdir(exist_ok=True)
        json_formatter = CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
        root_logger.addHandler(_rotating_handler(log_path / "tokens.log", logging.DEBUG, json_formatter))
        root_logger.addHandler(_rotating_handler(log_path / "error.log", logging.ERROR, json_formatter))

    for noisy in ("uvicorn", "uvicorn.access", "uvicorn.error", "sqlalchemy.engine",
                  "celery", "kombu", "amqp"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": log_level,
            "log_dir": str(log_path.absolute()) if log_to_file else None
        }
    )
