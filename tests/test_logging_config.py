"""Tests for bgenerator.utils.logging_config and bgenerator.utils.profiler."""

import json
import logging
import logging.handlers

import pytest

from bgenerator.utils import logging_config, profiler


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    logging_config.pop_context()
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
    logging.captureWarnings(False)


def make_record(msg="hello", level=logging.INFO):
    return logging.LogRecord("bgenerator.test", level, __file__, 1, msg, None, None)


# ============================================================================
# FORMATTER
# ============================================================================

def test_human_format_includes_context():
    fmt = logging_config.ContextFormatter("human", use_color=False)
    with logging_config.bound_context(run=3, canvas=2048):
        line = fmt.format(make_record())
    assert "| INFO" in line
    assert "run=3 canvas=2048 |" in line
    assert line.endswith("hello")


def test_json_format():
    fmt = logging_config.ContextFormatter("json")
    logging_config.push_context(app="generate")
    payload = json.loads(fmt.format(make_record("rendered")))
    assert payload["lvl"] == "INFO"
    assert payload["msg"] == "rendered"
    assert payload["app"] == "generate"


def test_unknown_format_rejected():
    with pytest.raises(ValueError):
        logging_config.ContextFormatter("xml")


def test_bound_context_restores_previous():
    fmt = logging_config.ContextFormatter("human", use_color=False)
    logging_config.push_context(app="generate")
    with logging_config.bound_context(run=1):
        assert "app=generate run=1" in fmt.format(make_record())
    line = fmt.format(make_record())
    assert "app=generate |" in line and "run=" not in line


def test_pop_context_keys():
    logging_config.push_context(a=1, b=2)
    logging_config.pop_context(["a"])
    line = logging_config.ContextFormatter("human", use_color=False).format(make_record())
    assert "b=2" in line and "a=1" not in line


# ============================================================================
# SETUP
# ============================================================================

def test_setup_logging_idempotent(tmp_path):
    log_file = tmp_path / "logs" / "run.log"
    logging_config.setup_logging("DEBUG", str(log_file), to_stderr=False)
    handlers = logging_config.setup_logging("DEBUG", str(log_file), to_stderr=False)
    assert len(logging.getLogger().handlers) == len(handlers) == 1

    logging_config.get_logger("bgenerator.test").info("written")
    for handler in handlers:
        handler.flush()
    assert "written" in log_file.read_text()


def test_setup_logging_rotation(tmp_path):
    handlers = logging_config.setup_logging(
        "INFO", str(tmp_path / "r.log"), to_stderr=False, rotate={"mode": "size", "max_bytes": 1000}
    )
    assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
    with pytest.raises(ValueError):
        logging_config.setup_logging("INFO", str(tmp_path / "x.log"), to_stderr=False, rotate={"mode": "weekly"})


def test_quiet_libs():
    logging_config.setup_logging("DEBUG", to_stderr=False)
    assert logging.getLogger("PIL").level == logging.WARNING


# ============================================================================
# PROFILER
# ============================================================================

def test_timer_sink_and_stage_timings():
    timings = profiler.StageTimings()
    with profiler.timer("grain", sink=timings.record):
        pass
    with profiler.timer("grain", sink=timings.record):
        pass
    with profiler.timer("blur", sink=timings.record):
        pass
    assert list(timings.stages) == ["grain", "blur"]
    assert timings.total >= 0.0
    assert set(timings.as_dict()) == {"grain", "blur"}


def test_timer_records_on_exception():
    seen = {}
    with pytest.raises(RuntimeError):
        with profiler.timer("boom", sink=lambda name, dt: seen.setdefault(name, dt)):
            raise RuntimeError("x")
    assert "boom" in seen


def test_log_sink(caplog):
    logger = logging.getLogger("bgenerator.timing")
    with caplog.at_level(logging.INFO, logger="bgenerator.timing"):
        with profiler.timer("encode", sink=profiler.log_sink(logger, logging.INFO)):
            pass
    assert "encode:" in caplog.text
