import structlog
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FILE_NAME = "db2pool.log"
ERROR_LOG_FILE_NAME = "db2pool.err"

def setup_logging(log_path: str, log_level: str):
    """
    Set up structured logging with rotating file handlers.

    Returns a structlog logger bound to the ``db2Pool`` namespace; events
    carry their level and an ISO timestamp.
    """
    # Create log directory if it doesn't exist
    os.makedirs(log_path, exist_ok=True)

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure standard logging
    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Main log handler (rotating file handler)
    log_file = os.path.join(log_path, LOG_FILE_NAME)
    handler = RotatingFileHandler(log_file, maxBytes=10*1024*1024, backupCount=5)
    formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # Error log handler (rotating file handler)
    error_log_file = os.path.join(log_path, ERROR_LOG_FILE_NAME)
    error_handler = RotatingFileHandler(error_log_file, maxBytes=10*1024*1024, backupCount=5)
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    # Console handler for real-time debugging
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return structlog.get_logger("db2Pool")
