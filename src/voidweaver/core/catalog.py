"""
Load the module catalog from the bundled modules.yaml file.

The catalog supplies display names and short descriptions for the eight
prompt modules. It is loaded once per process and validated against the
closed ModuleName enumeration.
"""

import importlib.resources
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from voidweaver.core.models import Module, ModuleName
from voidweaver.utils.exceptions import ConfigurationError

# Module-level cache for the parsed catalog
_catalog: "CatalogSchema | None" = None


class CatalogEntry(BaseModel):
    """Schema for one module entry in modules.yaml."""

    name: ModuleName
    display_name: str = Field(..., min_length=1)
    description: str = ""


class CatalogSchema(BaseModel):
    """Schema for modules.yaml."""

    modules: list[CatalogEntry]

    @model_validator(mode="after")
    def _check_canonical(self) -> "CatalogSchema":
        names = [entry.name for entry in self.modules]
        if names != list(ModuleName):
            expected = ", ".join(m.value for m in ModuleName)
            raise ValueError(f"modules must be exactly [{expected}] in that order")
        return self


def _load_catalog() -> CatalogSchema:
    """Load and validate modules.yaml from the package. Cached after first call.

    Raises:
        ConfigurationError: If YAML is missing, malformed, or fails validation.
    """
    global _catalog
    if _catalog is not None:
        return _catalog

    try:
        with (
            importlib.resources.files("voidweaver")
            .joinpath("modules.yaml")
            .open(encoding="utf-8") as f
        ):
            raw = f.read()
    except FileNotFoundError as e:
        raise ConfigurationError(
            "modules.yaml not found. This file is required and should be bundled with the package."
        ) from e

    try:
        data: Any = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse modules.yaml: {e}. Check YAML syntax and formatting."
        ) from e

    if data is None:
        raise ConfigurationError("modules.yaml is empty. Expected a 'modules' list.")

    try:
        catalog = CatalogSchema.model_validate(data)
    except ValidationError as e:
        errors = "\n".join(
            f"  - {'.'.join(str(p) for p in err['loc']) or 'modules'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid modules.yaml structure:\n{errors}") from e

    _catalog = catalog
    return _catalog


def get_display_name(name: ModuleName) -> str:
    """Return the display name for a module."""
    for entry in _load_catalog().modules:
        if entry.name is name:
            return entry.display_name
    return name.value.title()


def get_description(name: ModuleName) -> str:
    """Return the short editor hint for a module."""
    for entry in _load_catalog().modules:
        if entry.name is name:
            return entry.description
    return ""


def empty_module(name: ModuleName) -> Module:
    """Build an unlocked module with no tags."""
    return Module(name=name, display_name=get_display_name(name))


def initial_modules() -> tuple[Module, ...]:
    """Build the eight empty modules in canonical order."""
    return tuple(empty_module(name) for name in ModuleName)
