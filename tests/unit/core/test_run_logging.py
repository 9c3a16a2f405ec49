"""Tests for mlpredict logging configuration, context and formatters."""

import io
import json
import logging
import warnings

import pytest

from mlpredict.core.logging import (
    ConsoleFormatter,
    FileFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    format_duration,
    get_config,
    get_current_state,
    get_logger,
    get_run_id,
    is_configured,
    reset_logging,
    verbosity_to_level,
)


def make_record(message="hello", level=logging.INFO, name="mlpredict.test", **attrs):
    record = logging.LogRecord(name, level, __file__, 1, message, None, None)
    for key, value in attrs.items():
        setattr(record, key, value)
    return record


class TestFormatters:
    """Test log formatters."""

    def test_format_duration(self):
        assert format_duration(0.5) == "0.5s"
        assert format_duration(125.4) == "2m 5.4s"
        assert format_duration(7325) == "2h 2m 5s"

    def test_console_symbols(self):
        formatter = ConsoleFormatter()

        assert formatter.format(make_record()) == "> hello"
        assert formatter.format(make_record(level=logging.WARNING)) == "[!] hello"
        assert formatter.format(make_record(level=logging.ERROR)) == "[X] hello"

    def test_console_names_with_candidate(self):
        formatter = ConsoleFormatter(show_names=True)

        line = formatter.format(make_record(candidate="TaxiFare"))

        assert line == "> hello  (mlpredict.test|TaxiFare)"

    def test_console_colors(self):
        line = ConsoleFormatter(use_colors=True).format(make_record(level=logging.WARNING))

        assert line.startswith("\033[33m")
        assert line.endswith("\033[0m")

    def test_file_formatter(self):
        line = FileFormatter().format(make_record(run_id="P-1"))

        assert "INFO" in line
        assert "[P-1]" in line
        assert line.endswith("mlpredict.test: hello")

    def test_json_formatter(self):
        payload = json.loads(JsonFormatter().format(make_record(scenario="regression", candidate="Model")))

        assert payload["message"] == "hello"
        assert payload["level"] == "INFO"
        assert payload["scenario"] == "regression"
        assert payload["candidate"] == "Model"
        assert "model_dir" not in payload


class TestLogContext:
    """Test run context tracking."""

    def test_run_id_generated(self):
        with LogContext(model_dir="models/Churn") as ctx:
            assert get_run_id() == ctx.run_id
            assert ctx.run_id.startswith("P-")
            assert get_current_state().model_dir == "models/Churn"
        assert get_current_state() is None

    def test_nested_scenario_and_candidate(self):
        with LogContext(run_id="P-test"):
            with LogContext.scenario_of("forecasting"):
                with LogContext.candidate("SalesForecast"):
                    state = get_current_state()
                    assert (state.scenario, state.candidate) == ("forecasting", "SalesForecast")
                assert get_current_state().candidate is None
            assert get_current_state().scenario is None

    def test_helpers_outside_run(self):
        with LogContext.candidate("Model"):
            assert get_current_state() is None


class TestConfigureLogging:
    """Test handler installation and teardown."""

    def test_verbosity_levels(self):
        assert verbosity_to_level(0) == logging.WARNING
        assert verbosity_to_level(1) == logging.INFO
        assert verbosity_to_level(2) == logging.DEBUG

    def test_get_logger_namespaced(self):
        assert get_logger("mlpredict.runtime").name == "mlpredict.runtime"
        assert get_logger("plugins.custom").name == "mlpredict.plugins.custom"

    def test_console_output_and_context(self):
        stream = io.StringIO()
        configure_logging(verbose=2, stream=stream)
        logger = get_logger("mlpredict.test")

        with LogContext(run_id="P-ctx"), LogContext.candidate("TaxiFare"):
            logger.debug("introspecting")
        logger.info("done")

        output = stream.getvalue()
        assert "  . introspecting  (mlpredict.test|TaxiFare)" in output
        assert "> done" in output
        assert is_configured()
        assert get_config().verbose == 2

    def test_quiet_hides_info(self):
        stream = io.StringIO()
        configure_logging(verbose=0, stream=stream)

        get_logger("mlpredict.test").info("progress")
        get_logger("mlpredict.test").warning("careful")

        assert stream.getvalue() == "[!] careful\n"

    def test_json_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "run.jsonl"
        configure_logging(verbose=0, log_file=log_file, json_output=True, stream=io.StringIO())

        with LogContext(run_id="P-file", model_dir="models/TaxiFare"):
            get_logger("mlpredict.test").debug("compiled")
        reset_logging()

        payload = json.loads(log_file.read_text().strip())
        assert payload["run_id"] == "P-file"
        assert payload["model_dir"] == "models/TaxiFare"
        assert payload["message"] == "compiled"

    def test_warnings_captured(self):
        stream = io.StringIO()
        configure_logging(verbose=1, stream=stream)

        with warnings.catch_warnings():
            warnings.simplefilter("always")
            warnings.warn("dependency skipped", UserWarning)

        assert "dependency skipped" in stream.getvalue()

    def test_reconfigure_replaces_handlers(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging(stream=first)
        configure_logging(stream=second)

        get_logger("mlpredict.test").info("once")

        assert first.getvalue() == ""
        assert second.getvalue() == "> once\n"

    def test_reset(self):
        configure_logging(stream=io.StringIO())

        reset_logging()

        assert not is_configured()
        assert logging.getLogger("mlpredict").propagate is True
