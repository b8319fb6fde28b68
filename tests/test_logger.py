from __future__ import annotations

import logging

from notekeeper import config
from notekeeper.logger import configure_logging, log_file_path


def test_log_file_is_named_after_the_application():
    path = log_file_path()
    assert path.name == f"{config.APP_NAME.lower()}.log"
    assert path.parent.name == "logs"
    assert path.parent.is_dir()


def test_configure_logging_is_idempotent():
    logger = configure_logging()
    handlers = list(logger.handlers)

    assert configure_logging() is logger
    assert logger.handlers == handlers
    file_handlers = [h for h in handlers if isinstance(h, logging.FileHandler)]
    assert [h.baseFilename for h in file_handlers] == [str(log_file_path())]
