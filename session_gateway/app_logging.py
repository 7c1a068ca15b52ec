import logging
from pythonjsonlogger import jsonlogger

from . import config


def setup_logger(level: str = config.LOG_LEVEL) -> None:
    """Log JSON lines to stderr from the root logger."""
    logger = logging.getLogger()
    logger.setLevel(level.upper())
    for handler in logger.handlers:
        if isinstance(handler.formatter, jsonlogger.JsonFormatter):
            return
    logHandler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                         rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
    logHandler.setFormatter(formatter)
    logger.addHandler(logHandler)
