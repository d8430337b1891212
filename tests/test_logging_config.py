import pytest
import structlog

from btc_signal_engine.logging_config import configure_logging


def test_configure_logging_filters_below_level(capsys) -> None:
    configure_logging("WARNING")
    log = structlog.get_logger("test")
    log.info("test.hidden")
    log.warning("test.shown", key="value")
    out = capsys.readouterr().out
    assert "test.hidden" not in out
    assert "test.shown" in out
    configure_logging("INFO")


def test_unknown_level_is_rejected() -> None:
    with pytest.raises(ValueError):
        configure_logging("LOUD")
