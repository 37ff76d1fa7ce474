import logging

import pytest

from sim8086.config import LOGGER_NAME


@pytest.fixture(autouse=True)
def _restore_logger():
    """setup_logging() detaches the package logger from root; undo it so caplog still works."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
