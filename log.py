import logging
import logging.handlers


LOG_FILE = "log.txt"

default_formatter = logging.Formatter(
    "{time:\"%(asctime)s\","
    "level:\"%(levelname)s\","
    "filename:\"%(filename)s\","
    "function:\"%(funcName)s\"," 
    "lineno:%(lineno)d,"
    "msg:\"%(message)s\"}"
)

default_file_handler = logging.handlers.RotatingFileHandler(
    LOG_FILE, backupCount=2, delay=True
)
try:
    default_file_handler.doRollover()
except OSError:
    pass
default_file_handler.setLevel(logging.INFO)
default_file_handler.setFormatter(default_formatter)

default_stream_handler = logging.StreamHandler()
default_stream_handler.setLevel(logging.ERROR)
default_stream_handler.setFormatter(default_formatter)


def get_logger():
    logger: logging.Logger | None = None

    def _get_logger():
        nonlocal logger
        if logger != None:
            return logger

        logger = logging.getLogger()
        logger.setLevel(logging.INFO)
        
        logger.addHandler(default_file_handler)
        logger.addHandler(default_stream_handler)

        return logger

    return _get_logger


logger = get_logger()()


def set_log_level(level: int):
    logger.setLevel(level)
    default_file_handler.setLevel(level)


def enable_verbose_mode():
    """
    Echo everything from INFO upward to the console as well as the log file
    """
    default_stream_handler.setLevel(logging.INFO)
