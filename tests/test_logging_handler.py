from __future__ import annotations

import logging
import logging.handlers

from shroudwarden.backend.handlers.logging_handler import LevelTagFormatter, LoggingHandler


def record(level, msg="hello"):
    return logging.LogRecord("shroudwarden.test", level, __file__, 1, msg, None, None)


def test_level_tags() -> None:
    formatter = LevelTagFormatter(use_color=False)

    assert formatter.format(record(logging.WARNING)) == "[WARN] hello"
    assert formatter.format(record(logging.ERROR)) == "[ERROR] hello"
    assert formatter.format(record(logging.DEBUG)) == "[DEBUG] hello"
    info = formatter.format(record(logging.INFO))
    assert info.startswith("[") and info.endswith("] hello")


def test_previous_run_log_is_rotated(tmp_path) -> None:
    log_file = tmp_path / "shroudwarden.log"
    log_file.write_text("run 1\n")
    (tmp_path / "shroudwarden.log.1").write_text("run 0\n")

    LoggingHandler(tmp_path).rotate_log_file_per_run(log_file)

    assert not log_file.exists()
    assert (tmp_path / "shroudwarden.log.1").read_text() == "run 1\n"
    assert (tmp_path / "shroudwarden.log.2").read_text() == "run 0\n"


def test_file_and_console_handlers(tmp_path) -> None:
    logger = LoggingHandler(tmp_path / "logs").setup_logger(console_level="WARNING")
    logging.getLogger("shroudwarden.backend.example").debug("written to file only")
    for handler in logger.handlers:
        handler.flush()

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert "written to file only" in (tmp_path / "logs" / "shroudwarden.log").read_text()


def test_repeated_setup_does_not_duplicate_handlers(tmp_path) -> None:
    handler = LoggingHandler(tmp_path)
    handler.setup_logger()
    logger = handler.setup_logger()

    assert len(logger.handlers) == 2


def test_unusable_log_directory_degrades_to_console(tmp_path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")

    handler = LoggingHandler(blocker / "logs")
    logger = handler.setup_logger()

    assert handler.file_logging_available is False
    assert handler.get_log_file() is None
    assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)
