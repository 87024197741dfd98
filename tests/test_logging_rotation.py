import logging
from logging.handlers import RotatingFileHandler

import pytest

from storefront_drive import logging_setup
from storefront_drive.infrastructure import log_utils

LOGGER_TAG = "TEST"


@pytest.fixture
def temp_logger(tmp_path):
    log_path = tmp_path / "storefront_drive.log"
    logging_setup.configure_logging(log_path=log_path, force=True)
    adapter = logging_setup.get_logger(LOGGER_TAG)
    base_logger = logging.getLogger(logging_setup.LOGGER_NAME)
    try:
        yield adapter, base_logger, log_path
    finally:
        logging_setup.reset_logging()


def _flush(base_logger):
    for handler in base_logger.handlers:
        handler.flush()


def test_rotating_handler_defaults(temp_logger):
    adapter, base_logger, log_path = temp_logger
    rotating_handlers = [h for h in base_logger.handlers if isinstance(h, RotatingFileHandler)]
    assert rotating_handlers, "Expected at least one rotating handler"
    handler = rotating_handlers[0]
    assert handler.maxBytes == logging_setup.DEFAULT_MAX_BYTES
    assert handler.backupCount == logging_setup.DEFAULT_BACKUP_COUNT
    assert handler.baseFilename == str(log_path)


def test_rotating_handler_rollover(tmp_path):
    log_path = tmp_path / "storefront_drive.log"
    base_logger = logging.getLogger(logging_setup.LOGGER_NAME)
    logging_setup.configure_logging(
        log_path=log_path,
        force=True,
        max_bytes=512,
        backup_count=2,
    )
    adapter = logging_setup.get_logger(LOGGER_TAG)
    try:
        payload = "x" * 256
        for _ in range(10):
            adapter.info(payload)
        _flush(base_logger)
        rolled = log_path.with_name("storefront_drive.log.1")
        assert log_path.exists()
        assert rolled.exists(), "Expected first rotated log file to exist"
    finally:
        logging_setup.reset_logging()


def test_log_message_writes_tagged_line(temp_logger):
    _, base_logger, log_path = temp_logger

    log_utils.log_message("Stored Google Drive refresh token.", "INFO", tag="AUTH")
    log_utils.log_message("Popup message ignored.", "DEBUG", tag="LSTN")
    _flush(base_logger)

    contents = log_path.read_text(encoding="utf-8")
    assert "[INFO] [AUTH] Stored Google Drive refresh token." in contents
    assert "Popup message ignored." not in contents


def test_unknown_level_is_logged_as_info(temp_logger):
    _, base_logger, log_path = temp_logger

    log_utils.log_message("odd level", "LOUD", tag="AUTH")
    _flush(base_logger)

    contents = log_path.read_text(encoding="utf-8")
    assert "Unknown log level 'LOUD'" in contents


@pytest.mark.parametrize(
    "module_name, expected",
    [
        ("storefront_drive.application.callback_page", "CB"),
        ("storefront_drive.application.auth_listener", "LSTN"),
        ("storefront_drive.application.token_store", "AUTH"),
        ("storefront_drive.infrastructure.google_oauth_client", "AUTH"),
        ("storefront_drive.infrastructure.google_drive_client", "DRIVE"),
        ("storefront_drive.cli.drive", "CLI"),
        ("storefront_drive.api", "API"),
        ("scripts.check_drive_auth", "AUTH"),
        ("storefront_drive.application.window", "GEN"),
    ],
)
def test_tag_for_module(module_name, expected):
    assert logging_setup.get_tag_for_module(module_name) == expected
