"""Test logging configuration."""

import io
import json
import logging
import sys
from pathlib import Path

import pytest
import structlog
from structlog.testing import LogCapture

from frp_fleet.common.logging import get_logger, setup_logging


class TestLogging:
    """Test logging functionality."""

    def setup_method(self) -> None:
        """Reset logging configuration before each test."""
        structlog.reset_defaults()
        root_logger = logging.getLogger()
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

    def test_setup_logging_with_level(self) -> None:
        setup_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG

    def test_console_handler_writes_to_stderr(self) -> None:
        """Progress output owns stdout, so logs go to stderr."""
        setup_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert handlers[0].stream is sys.stderr

    def test_setup_is_repeatable(self) -> None:
        setup_logging()
        setup_logging(level="WARNING")

        assert len(logging.getLogger().handlers) == 1
        assert logging.getLogger().level == logging.WARNING

    def test_key_value_events(self) -> None:
        """Events carry structured key/value context."""
        setup_logging(json_format=True)
        logger = get_logger("frp_fleet.test")

        cap = LogCapture()
        structlog.configure(processors=[cap])

        logger.info("Reconcile complete", indexed=3, failed=0)

        assert len(cap.entries) == 1
        assert cap.entries[0]["event"] == "Reconcile complete"
        assert cap.entries[0]["indexed"] == 3
        assert cap.entries[0]["failed"] == 0

    def test_setup_logging_with_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "fleet.log"
        setup_logging(log_file=str(log_file))

        logging.getLogger("frp_fleet.file").info("bulk restart finished")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "bulk restart finished" in log_file.read_text()

    def test_invalid_level(self) -> None:
        with pytest.raises(ValueError, match="Unknown log level"):
            setup_logging(level="VERBOSE")

    def test_bound_context_is_merged(self) -> None:
        """Context bound around a batch shows up on every event inside it."""
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)
        logger = get_logger("frp_fleet.ops.executor")

        with structlog.contextvars.bound_contextvars(lifecycle="restart"):
            logger.info("Starting bulk stop operation", total=4)
        logger.info("Outside")

        first, second = (json.loads(line) for line in stream.getvalue().splitlines())
        assert first["lifecycle"] == "restart"
        assert first["total"] == 4
        assert first["level"] == "info"
        assert "lifecycle" not in second
