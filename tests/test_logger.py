import logging
from pathlib import Path

from codesherpa.logger import (
    configure_logging,
    get_logger,
    level_for_verbosity,
    redirect_logging_to_file,
)


def test_verbosity_levels() -> None:
    assert level_for_verbosity(0) == logging.INFO
    assert level_for_verbosity(2) == logging.DEBUG


def test_file_logging_respects_level(tmp_path: Path) -> None:
    target = tmp_path / "logs" / "scan.log"
    log = get_logger("codesherpa.test")
    try:
        redirect_logging_to_file(target, level=logging.INFO)
        log.debug("hidden_event")
        log.info("file_skipped", file="notes.txt")
        logging.getLogger("foreign").warning("plain stdlib record")

        text = target.read_text(encoding="utf-8")
        assert "file_skipped" in text
        assert "notes.txt" in text
        assert "plain stdlib record" in text
        assert "hidden_event" not in text
        assert len(logging.getLogger().handlers) == 1
    finally:
        configure_logging(enable_console=False)
