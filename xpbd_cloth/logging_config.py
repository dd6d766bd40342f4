import logging
import logging.handlers
import os
'''
Example for usage of logger.*
from xpbd_cloth.logging_config import setup_logging

logger = setup_logging()
logger.info('Initialized solver with 450 particles.')
logger.debug('Step 12 finished, t=0.192')
logger.warning('3 non-manifold edges found, using their first two apexes.')
'''

LOGGER_NAME = 'xpbd_cloth'


def _is_console(handler):
    return (isinstance(handler, logging.StreamHandler)
            and not isinstance(handler, logging.FileHandler))


def setup_logging(log_file=None, quiet: bool = False, level=logging.INFO):
    """Configure the package logger; safe to call repeatedly.

    Later calls adjust the console level, add a file handler for a new
    ``log_file`` and drop the console handler when ``quiet``.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    if log_file is not None:
        path = os.path.abspath(log_file)
        if not any(isinstance(h, logging.FileHandler) and h.baseFilename == path
                   for h in logger.handlers):
            file_handler = logging.handlers.RotatingFileHandler(path,
                                                                maxBytes=5_000_000,
                                                                backupCount=0)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    consoles = [h for h in logger.handlers if _is_console(h)]
    if quiet:
        for handler in consoles:
            logger.removeHandler(handler)
    elif consoles:
        for handler in consoles:
            handler.setLevel(level)
    else:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
