import json
import logging

from memories.core.config import Settings
from memories.core.logger import JsonFormatter, build_logging_config, setup_logging
from memories.utils.performance import PerformanceMonitor


def test_production_logging_is_json():
    config = build_logging_config(Settings(ENVIRONMENT="production", LOG_LEVEL="WARNING"))
    assert config["handlers"]["console_json"]["formatter"] == "json"
    assert config["loggers"]["memories"]["level"] == "WARNING"
    assert config["loggers"]["timezonefinder"]["level"] == "WARNING"


def test_development_logging_is_text():
    config = build_logging_config(Settings(ENVIRONMENT="development"))
    assert config["handlers"]["console"]["formatter"] == "default"


def test_json_formatter():
    record = logging.LogRecord("memories.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"


def test_setup_logging_applies_config():
    setup_logging(Settings(ENVIRONMENT="development", LOG_LEVEL="DEBUG"))
    assert logging.getLogger("memories").level == logging.DEBUG


def test_performance_monitor_report():
    with PerformanceMonitor("unit") as monitor:
        sum(range(1000))
    message = monitor.report(count=3)
    assert message.startswith("[unit] (N=3)")
    assert monitor.duration >= 0
