import logging

from logging_setup import get_logger, setup_logging


def test_setup_is_idempotent_and_does_not_touch_root():
    root_handlers = list(logging.getLogger().handlers)
    logger = setup_logging()
    setup_logging()
    assert logger.name == "schoolrec"
    assert len([h for h in logger.handlers if isinstance(h, logging.StreamHandler)]) == 1
    assert logger.propagate is False
    assert logging.getLogger().handlers == root_handlers


def test_child_loggers():
    assert get_logger("crud").name == "schoolrec.crud"
    assert get_logger() is logging.getLogger("schoolrec")
