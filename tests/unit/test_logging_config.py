"""
Unit tests for structured logging.
"""

import json
import logging

import pytest

from terramap.logging_config import (
    GenerationRunContext,
    StructuredFormatter,
    get_logger,
    get_run_id,
    log_with_context,
    set_package_log_level,
    setup_logging,
)


def _record(message: str, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="terramap.generator",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=None,
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestStructuredFormatter:
    """Tests for StructuredFormatter."""

    def test_standard_fields(self) -> None:
        """Test that every entry carries the standard fields."""
        entry = json.loads(StructuredFormatter().format(_record("Mapper declined")))

        assert entry["level"] == "WARNING"
        assert entry["logger"] == "terramap.generator"
        assert entry["message"] == "Mapper declined"
        assert entry["run_id"] is None
        assert "timestamp" in entry

    def test_extra_fields_become_top_level(self) -> None:
        """Test that context fields are flattened into the entry."""
        record = _record("Mapped resource", aws_type="AWS::EC2::VPC", address="aws_vpc.main")

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["aws_type"] == "AWS::EC2::VPC"
        assert entry["address"] == "aws_vpc.main"

    def test_run_id_included_inside_run(self) -> None:
        """Test that the current run identifier is attached."""
        with GenerationRunContext("run-123"):
            entry = json.loads(StructuredFormatter().format(_record("inside")))

        assert entry["run_id"] == "run-123"


class TestGenerationRunContext:
    """Tests for GenerationRunContext."""

    def test_run_id_scoped_to_block(self) -> None:
        """Test that the run id is cleared on exit."""
        with GenerationRunContext() as run_id:
            assert get_run_id() == run_id
            assert run_id

        assert get_run_id() is None

    def test_cleared_on_exception(self) -> None:
        """Test that the run id is cleared even when the block raises."""
        with pytest.raises(RuntimeError):
            with GenerationRunContext("run-err"):
                raise RuntimeError("boom")

        assert get_run_id() is None


class TestLogWithContext:
    """Tests for log_with_context."""

    def test_context_attached_to_record(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that keyword context ends up on the log record."""
        logger = get_logger("terramap.tests")

        with caplog.at_level(logging.INFO, logger="terramap.tests"):
            log_with_context(logger, "info", "Mapped resource", address="aws_vpc.main")

        record = caplog.records[-1]
        assert record.getMessage() == "Mapped resource"
        assert getattr(record, "address") == "aws_vpc.main"

    def test_exc_info_passed_through(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that exc_info is not treated as a context field."""
        logger = get_logger("terramap.tests")

        with caplog.at_level(logging.ERROR, logger="terramap.tests"):
            try:
                raise ValueError("bad shape")
            except ValueError:
                log_with_context(logger, "error", "Mapper failed", exc_info=True)

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert record.exc_info[0] is ValueError


class TestSetPackageLogLevel:
    """Tests for set_package_log_level."""

    def test_level_set_without_touching_handlers(self) -> None:
        """Test that only the terramap logger level changes."""
        package_logger = logging.getLogger("terramap")
        root_handlers = list(logging.getLogger().handlers)
        previous = package_logger.level
        try:
            set_package_log_level("WARNING")

            assert package_logger.level == logging.WARNING
            assert not get_logger("terramap.generator").isEnabledFor(logging.INFO)
            assert logging.getLogger().handlers == root_handlers
        finally:
            package_logger.setLevel(previous)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_installs_single_structured_handler(self) -> None:
        """Test that the root logger gets one JSON handler at the given level."""
        root_logger = logging.getLogger()
        previous_handlers = list(root_logger.handlers)
        previous_level = root_logger.level
        try:
            setup_logging("ERROR")

            assert root_logger.level == logging.ERROR
            assert len(root_logger.handlers) == 1
            assert isinstance(root_logger.handlers[0].formatter, StructuredFormatter)
        finally:
            for handler in root_logger.handlers[:]:
                root_logger.removeHandler(handler)
            for handler in previous_handlers:
                root_logger.addHandler(handler)
            root_logger.setLevel(previous_level)
