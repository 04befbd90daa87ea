"""Unit tests for version consistency."""

import importlib.metadata

import pytest

import voidweaver


@pytest.mark.unit
class TestVersionConsistency:
    def test_version_matches_package_metadata(self):
        try:
            pkg_version = importlib.metadata.version("voidweaver")
        except importlib.metadata.PackageNotFoundError:
            pytest.skip("Package not installed, can't verify metadata version")
        assert voidweaver.__version__ == pkg_version

    def test_version_format(self):
        version = voidweaver.__version__
        assert isinstance(version, str)
        if version.endswith(".dev"):
            assert version == "0.0.0.dev"
        else:
            assert len(version.split(".")) >= 2, f"Version {version} should have at least major.minor"
