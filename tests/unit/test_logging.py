"""Unit tests for Leo Kit logging and observability.

This module tests the logging infrastructure, performance monitoring,
observability hooks and the domain event helpers.
"""

import json
import logging
import pytest
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch, MagicMock

from leokit.leokit_logging import (
    setup_logging,
    JsonFormatter,
    PerformanceMonitor,
    log_performance,
    log_operation,
    ObservabilityHooks,
    log_roster_change,
    log_hunt_event,
    log_handoff,
    log_error_with_context,
    observability_hooks,
    performance_monitor,
)


class TestJsonFormatter:
    """Test cases for JsonFormatter."""

    def test_json_formatter_basic(self):
        """Test basic JSON formatting."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        record = logger.makeRecord("test", logging.INFO, "leokit.py", 1, "Test message", (), None)

        data = json.loads(formatter.format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert "line" in data

    def test_json_formatter_with_exception(self):
        """Test JSON formatting with exception info."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        try:
            raise ValueError("Test exception")
        except ValueError:
            record = logger.makeRecord("test", logging.ERROR, "leokit.py", 1, "Boom", (), sys.exc_info())

        data = json.loads(formatter.format(record))

        assert data["level"] == "ERROR"
        assert "ValueError" in data["exception"]

    def test_json_formatter_with_extra_fields(self):
        """Extra fields are merged into the JSON document."""
        formatter = JsonFormatter()
        logger = logging.getLogger("test")
        record = logger.makeRecord("test", logging.INFO, "leokit.py", 1, "Handoff", (), None)
        record.extra_fields = {"hunt_id": "hunt-1234abcd"}

        data = json.loads(formatter.format(record))

        assert data["hunt_id"] == "hunt-1234abcd"


class TestPerformanceMonitor:
    """Test cases for PerformanceMonitor."""

    def test_record_metric(self):
        """Test recording a performance metric."""
        monitor = PerformanceMonitor()
        monitor.record_metric("handoff_duration", 0.5, {"status": "success"})

        metrics = monitor.get_metrics("handoff_duration")

        assert len(metrics["handoff_duration"]) == 1
        assert metrics["handoff_duration"][0]["value"] == 0.5
        assert metrics["handoff_duration"][0]["tags"]["status"] == "success"

    def test_get_all_metrics_and_clear(self):
        """Test getting all metrics and clearing them."""
        monitor = PerformanceMonitor()
        monitor.record_metric("metric1", 1)
        monitor.record_metric("metric2", 2)
        monitor.record_metric("metric1", 3)

        all_metrics = monitor.get_metrics()
        assert len(all_metrics["metric1"]) == 2
        assert len(all_metrics["metric2"]) == 1

        monitor.clear()
        assert monitor.get_metrics() == {}


class TestLogPerformance:
    """Test cases for log_performance decorator."""

    def setup_method(self):
        performance_monitor.clear()

    def test_log_performance_decorator(self):
        """Successful calls record a success metric."""
        @log_performance("unit_operation")
        def operation():
            return "result"

        assert operation() == "result"

        metrics = performance_monitor.get_metrics("unit_operation_duration")
        assert len(metrics["unit_operation_duration"]) == 1
        assert metrics["unit_operation_duration"][0]["tags"]["status"] == "success"

    def test_log_performance_decorator_with_exception(self):
        """Failures record an error metric and re-raise."""
        @log_performance("unit_operation")
        def operation():
            raise ValueError("Test error")

        with pytest.raises(ValueError):
            operation()

        metrics = performance_monitor.get_metrics("unit_operation_duration")
        assert metrics["unit_operation_duration"][0]["tags"]["status"] == "error"
        assert metrics["unit_operation_duration"][0]["tags"]["error_type"] == "ValueError"


class TestLogOperation:
    """Test cases for log_operation context manager."""

    def test_log_operation_success(self):
        """Test successful operation logging."""
        with patch("leokit.leokit_logging.std_logging.getLogger") as mock_logger:
            mock_logger_instance = MagicMock()
            mock_logger.return_value = mock_logger_instance

            with log_operation("save_config", team_size=2):
                pass

            assert mock_logger_instance.info.called
            assert mock_logger_instance.error.called is False

    def test_log_operation_with_exception(self):
        """Test operation logging with exception."""
        with patch("leokit.leokit_logging.std_logging.getLogger") as mock_logger:
            mock_logger_instance = MagicMock()
            mock_logger.return_value = mock_logger_instance

            with pytest.raises(ValueError):
                with log_operation("save_config"):
                    raise ValueError("Disk full")

            assert mock_logger_instance.error.called
            assert "Disk full" in str(mock_logger_instance.error.call_args)


class TestObservabilityHooks:
    """Test cases for ObservabilityHooks."""

    def test_register_and_trigger_hooks(self):
        """Test registering and triggering hooks."""
        hooks = ObservabilityHooks()
        received = []

        hooks.register_hook("handoff_executed", lambda **data: received.append(data))
        hooks.trigger_hooks("handoff_executed", hunt_id="hunt-1")

        assert received == [{"hunt_id": "hunt-1"}]

    def test_unregister_hook(self):
        """Unregistered callbacks are no longer called."""
        hooks = ObservabilityHooks()
        received = []

        def callback(**data):
            received.append(data)

        hooks.register_hook("hunt_started", callback)
        hooks.unregister_hook("hunt_started", callback)
        hooks.trigger_hooks("hunt_started", hunt_id="hunt-1")

        assert received == []

    def test_log_workflow_event_passes_hunt_id(self):
        """Workflow events carry a timestamp and the hunt id to hooks."""
        hooks = ObservabilityHooks()
        received = []
        hooks.register_hook("hunt_completed", lambda **data: received.append(data))

        hooks.log_workflow_event("hunt_completed", hunt_id="hunt-9", total_duration=12)

        assert received[0]["hunt_id"] == "hunt-9"
        assert received[0]["total_duration"] == 12
        assert "timestamp" in received[0]
        assert "event_type" not in received[0]

    def test_hook_failure_handling(self):
        """A failing hook does not stop the others."""
        hooks = ObservabilityHooks()
        received = []

        def failing_callback(**data):
            raise ValueError("Hook failed")

        hooks.register_hook("member_added", failing_callback)
        hooks.register_hook("member_added", lambda **data: received.append(data))

        hooks.trigger_hooks("member_added", username="alice")

        assert received == [{"username": "alice"}]


class TestDomainEvents:
    """Test cases for the roster, hunt and handoff event helpers."""

    def test_log_roster_change(self):
        with patch("leokit.leokit_logging.observability_hooks") as mock_hooks:
            log_roster_change("Added", "alice", role="spec")

            args, kwargs = mock_hooks.log_workflow_event.call_args
            assert args == ("member_added",)
            assert kwargs == {"username": "alice", "role": "spec"}

    def test_log_hunt_event(self):
        with patch("leokit.leokit_logging.observability_hooks") as mock_hooks:
            log_hunt_event("started", "hunt-1", feature_name="Login")

            args, kwargs = mock_hooks.log_workflow_event.call_args
            assert args == ("hunt_started",)
            assert kwargs["hunt_id"] == "hunt-1"
            assert kwargs["feature_name"] == "Login"

    def test_log_handoff(self):
        with patch("leokit.leokit_logging.observability_hooks") as mock_hooks:
            log_handoff("hunt-1", "spec", "implementation", to_member="carol")

            args, kwargs = mock_hooks.log_workflow_event.call_args
            assert args == ("handoff_executed",)
            assert kwargs["from_role"] == "spec"
            assert kwargs["to_role"] == "implementation"
            assert kwargs["to_member"] == "carol"

    def test_log_error_with_context(self):
        """Test log_error_with_context function."""
        with patch("leokit.leokit_logging.std_logging.getLogger") as mock_logger:
            error = ValueError("Test error")
            context = {"operation": "handoff", "hunt_id": "hunt-1"}

            log_error_with_context(error, context, extra_param="extra_value")

            call_args = mock_logger.return_value.error.call_args
            assert "Test error" in str(call_args)
            extra = call_args[1]["extra"]["extra_fields"]
            assert extra["context"] == context
            assert extra["extra_param"] == "extra_value"
            assert extra["error_type"] == "ValueError"


class TestLoggingIntegration:
    """Integration tests for logging functionality."""

    def test_setup_logging_writes_json_file(self):
        """Test setting up logging configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "leokit.log"

            setup_logging(log_level=logging.DEBUG, log_file=log_file)
            logging.getLogger("leokit.test").info("Test message")

            content = log_file.read_text()
            assert "Test message" in content
            for line in content.strip().split("\n"):
                json.loads(line)

            for handler in logging.getLogger("leokit").handlers:
                handler.close()
            logging.getLogger("leokit").handlers.clear()

    def test_end_to_end_event_flow(self):
        """Domain events reach registered hooks and the log file."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = Path(temp_dir) / "leokit.log"
            setup_logging(log_level=logging.INFO, log_file=log_file)
            received = []

            def hook(**data):
                received.append(data)

            observability_hooks.register_hook("hunt_started", hook)
            try:
                log_hunt_event("started", "hunt-e2e", feature_name="Search")
            finally:
                observability_hooks.unregister_hook("hunt_started", hook)

            assert received[0]["hunt_id"] == "hunt-e2e"
            assert "Workflow event: hunt_started" in log_file.read_text()

            for handler in logging.getLogger("leokit").handlers:
                handler.close()
            logging.getLogger("leokit").handlers.clear()
