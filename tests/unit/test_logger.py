"""
Tests for logging setup.
"""

import logging

from closet.utils.logger import ClosetLogger, get_logger, setup_logging


class TestLogger:
    """Tests for the closet logger tree."""

    def teardown_method(self):
        setup_logging(level=logging.INFO)

    def test_subsystem_names(self):
        assert get_logger("store").name == "closet.store"

    def test_setup_replaces_handlers(self):
        setup_logging(level=logging.INFO)
        setup_logging(level=logging.DEBUG)
        root = logging.getLogger("closet")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1

    def test_records_reach_caplog(self, caplog):
        setup_logging(level=logging.INFO)
        with caplog.at_level(logging.INFO, logger="closet"):
            get_logger("store").info("listing created")
        assert [r.name for r in caplog.records] == ["closet.store"]
        assert "listing created" in caplog.text

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("CLOSET_LOG_LEVEL", "warning")
        setup_logging()
        assert logging.getLogger("closet").level == logging.WARNING

    def test_unknown_env_level_ignored(self, monkeypatch):
        monkeypatch.setenv("CLOSET_LOG_LEVEL", "chatty")
        setup_logging()
        assert logging.getLogger("closet").level == logging.INFO

    def test_file_handler(self, tmp_path):
        setup_logging(level=logging.INFO, log_dir=str(tmp_path), log_to_file=True)
        get_logger("store").info("listing created")
        for handler in logging.getLogger("closet").handlers:
            handler.flush()
        assert "listing created" in (tmp_path / "closet.log").read_text()
        assert ClosetLogger._log_dir == tmp_path
