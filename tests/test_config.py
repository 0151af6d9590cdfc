import logging
import os

from comanda.config import parse_path_list
from comanda.log import LOGGER_NAME, configure_logging


def test_parse_path_list_splits_and_dedupes():
    raw = f"/dev/usb/lp0, /dev/lp0{os.pathsep}/dev/usb/lp0,,"

    assert parse_path_list(raw) == ("/dev/usb/lp0", "/dev/lp0")
    assert parse_path_list("") == ()


def test_configure_logging_writes_to_rotating_file(tmp_path):
    logger = logging.getLogger(LOGGER_NAME)
    saved = list(logger.handlers)
    for handler in saved:
        logger.removeHandler(handler)
    try:
        log_file = tmp_path / "logs" / "comanda.log"
        configured = configure_logging(log_path=str(log_file), level="DEBUG")
        logging.getLogger("comanda.printer").info("ticket printed")
        for handler in configured.handlers:
            handler.flush()

        assert configure_logging(log_path=str(log_file)) is configured
        assert len(configured.handlers) == 1
        assert "ticket printed" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
        for handler in saved:
            logger.addHandler(handler)
