"""
Pytest configuration: default runs unit tests; use --run-slow to include slow tests.

Also resets the process-wide config, credential store and logging state so
tests do not leak into each other or read the developer's real files.
"""

import pytest

import voidweaver.logging_config as logging_config
from voidweaver.core.config import Config, set_config
from voidweaver.utils.credentials import set_credential_store


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (live backend). Default: skip them.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow", False):
        return
    skip_slow = pytest.mark.skip(reason="Slow test; run with --run-slow to include")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def _isolated_globals(tmp_path, monkeypatch):
    for name in (
        "GEMINI_API_KEY",
        "NOVELAI_API_KEY",
        "GOOGLE_CREDENTIALS",
        "VOIDWEAVER_SESSION",
        "VOIDWEAVER_VERBOSITY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("VOIDWEAVER_CREDENTIALS_FILE", str(tmp_path / "credentials.json"))
    set_config(Config(credentials_file=tmp_path / "credentials.json"))
    set_credential_store(None)
    yield
    set_config(None)  # type: ignore[arg-type]
    set_credential_store(None)
    logging_config._configured = False
