"""Unit tests for logging configuration."""

import logging

import pytest

from voidweaver.logging_config import (
    configure_logging,
    get_logger,
    get_verbosity_from_env,
    log_prompts,
    set_verbosity,
)


def _root() -> logging.Logger:
    return logging.getLogger("voidweaver")


@pytest.mark.unit
class TestSetVerbosity:
    @pytest.mark.parametrize(
        "level,expected_level,prompts",
        [
            (0, logging.INFO, False),
            (1, logging.INFO, True),
            (2, logging.DEBUG, True),
            (-1, logging.INFO, False),
        ],
    )
    def test_levels(self, level, expected_level, prompts):
        set_verbosity(level)
        assert _root().level == expected_level
        assert log_prompts() is prompts

    def test_handler_is_added_once(self):
        set_verbosity(0)
        count = len(_root().handlers)
        set_verbosity(2)
        assert len(_root().handlers) == count


@pytest.mark.unit
class TestConfigureLogging:
    def test_quiet_sets_warning_and_no_prompts(self):
        set_verbosity(1)
        configure_logging(verbose_level=1, quiet=True)
        assert _root().level == logging.WARNING
        assert log_prompts() is False

    def test_not_quiet_delegates_to_set_verbosity(self):
        configure_logging(verbose_level=2, quiet=False)
        assert _root().level == logging.DEBUG
        assert log_prompts() is True


@pytest.mark.unit
class TestGetVerbosityFromEnv:
    def test_default_missing(self, monkeypatch):
        monkeypatch.delenv("VOIDWEAVER_VERBOSITY", raising=False)
        assert get_verbosity_from_env() == 0

    @pytest.mark.parametrize("raw,expected", [("0", 0), ("1", 1), (" 2 ", 2), ("x", 0), ("", 0)])
    def test_values(self, monkeypatch, raw, expected):
        monkeypatch.setenv("VOIDWEAVER_VERBOSITY", raw)
        assert get_verbosity_from_env() == expected


@pytest.mark.unit
class TestGetLogger:
    def test_returns_voidweaver_child(self):
        assert get_logger("core.store").name == "voidweaver.core.store"

    def test_full_name_unchanged(self):
        assert get_logger("voidweaver.core.merge").name == "voidweaver.core.merge"

    def test_root_name_unchanged(self):
        assert get_logger("voidweaver").name == "voidweaver"
