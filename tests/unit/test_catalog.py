"""Unit tests for the bundled module catalog."""

from unittest.mock import patch

import pytest

import voidweaver.core.catalog as catalog
from voidweaver.core.catalog import (
    get_description,
    get_display_name,
    initial_modules,
)
from voidweaver.core.models import ModuleName
from voidweaver.utils.exceptions import ConfigurationError


@pytest.fixture
def fresh_catalog():
    saved = catalog._catalog
    catalog._catalog = None
    yield
    catalog._catalog = saved


def _fake_resource(text: str):
    """Patch importlib.resources.files so modules.yaml reads as text."""
    from io import StringIO

    files = patch("voidweaver.core.catalog.importlib.resources.files")
    mock_files = files.start()
    mock_files.return_value.joinpath.return_value.open.return_value = StringIO(text)
    return files


@pytest.mark.unit
class TestCatalog:
    def test_display_names(self):
        assert get_display_name(ModuleName.STYLE) == "Style"
        assert get_display_name(ModuleName.EXTRA) == "Extra Description"

    def test_every_module_has_a_description(self):
        assert all(get_description(name) for name in ModuleName)

    def test_initial_modules(self):
        modules = initial_modules()
        assert [m.name for m in modules] == list(ModuleName)
        assert all(not m.locked and m.tags == () for m in modules)

    def test_catalog_is_cached(self):
        assert catalog._load_catalog() is catalog._load_catalog()


@pytest.mark.unit
class TestCatalogErrors:
    def test_empty_file(self, fresh_catalog):
        p = _fake_resource("")
        try:
            with pytest.raises(ConfigurationError) as exc_info:
                catalog._load_catalog()
            assert "empty" in str(exc_info.value)
        finally:
            p.stop()

    def test_malformed_yaml(self, fresh_catalog):
        p = _fake_resource("modules: [unclosed")
        try:
            with pytest.raises(ConfigurationError) as exc_info:
                catalog._load_catalog()
            assert "Failed to parse" in str(exc_info.value)
        finally:
            p.stop()

    def test_wrong_module_order(self, fresh_catalog):
        p = _fake_resource("modules:\n  - name: subject\n    display_name: Subject\n")
        try:
            with pytest.raises(ConfigurationError) as exc_info:
                catalog._load_catalog()
            assert "Invalid modules.yaml" in str(exc_info.value)
        finally:
            p.stop()
