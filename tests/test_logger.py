import logging

import pytest

from govbox.constants import LOG_DATE_FORMAT, LOG_FORMAT
from govbox.logger import LogManager, TerminalSafeFormatter, get_logger


class TestTerminalSafeFormatter:

    def test_strips_ansi_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m") == "red"

    def test_strips_control_characters(self):
        assert TerminalSafeFormatter.sanitize("a\x00b\x07c\rd") == "abcd"

    def test_keeps_newlines_and_tabs(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc") == "a\tb\nc"

    def test_format_sanitizes_arguments(self):
        formatter = TerminalSafeFormatter(fmt="%(message)s")
        record = logging.LogRecord(
            name="govbox", level=logging.INFO, pathname="", lineno=0,
            msg="reverted: %s", args=("\x1b[2Jboom",), exc_info=None,
        )
        assert formatter.format(record) == "reverted: boom"


class TestFormatValidation:

    def test_valid_format_kept(self):
        assert LogManager.validate_log_format("%(levelname)s %(message)s") == "%(levelname)s %(message)s"

    def test_invalid_format_falls_back(self, capsys):
        assert LogManager.validate_log_format("%(nope)s") == str(LOG_FORMAT.default())
        assert "Invalid log format" in capsys.readouterr().err

    def test_empty_format_falls_back(self):
        assert LogManager.validate_log_format("") == str(LOG_FORMAT.default())

    def test_date_format(self):
        assert LogManager.validate_date_format("%H:%M") == "%H:%M"
        assert LogManager.validate_date_format("plain") == str(LOG_DATE_FORMAT.default())


def test_manager_is_singleton():
    assert LogManager() is LogManager()


def test_get_logger_configures_once():
    logger = get_logger("govbox.tests")
    assert logger.name == "govbox.tests"
    assert LogManager().is_configured


class TestConsoleLevel:

    @pytest.fixture
    def manager(self, monkeypatch):
        manager = LogManager()
        manager.get_logger("govbox.tests")
        console = logging.StreamHandler()
        console.setLevel(logging.INFO)
        file_handler = logging.NullHandler()
        file_handler.setLevel(logging.INFO)
        monkeypatch.setattr(manager, "_console_handler", console)
        monkeypatch.setattr(manager, "_file_handler", file_handler)
        root = logging.getLogger()
        level = root.level
        yield manager
        root.setLevel(level)

    def test_raising_console_level_keeps_file_log(self, manager):
        manager.set_console_level("ERROR")

        assert manager.console_handler.level == logging.ERROR
        assert manager.file_handler.level == logging.INFO
        assert logging.getLogger().level == logging.INFO

    def test_lowering_console_level_lowers_root(self, manager):
        manager.set_console_level("debug")

        assert manager.console_handler.level == logging.DEBUG
        assert logging.getLogger().level == logging.DEBUG
