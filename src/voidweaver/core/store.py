"""
The authoritative in-memory model of the eight prompt modules.

Every operation replaces whole Module objects. Modules an operation does not
touch are kept as the same objects, so callers can detect changes with an
identity check. The module name set and order never change.
"""

from collections.abc import Callable, Iterable
from dataclasses import replace
from typing import Any

from voidweaver.core.catalog import empty_module, initial_modules
from voidweaver.core.codec import Dialect, adjust_weight, parse_tags, serialize_tags
from voidweaver.core.merge import index_by_name
from voidweaver.core.models import Module, ModuleName, Tag, clamp_weight
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import ValidationError

logger = get_logger(__name__)

_MODULE_FIELDS = frozenset({"display_name", "locked", "tags"})
_TAG_FIELDS = frozenset({"text", "weight", "hidden"})


class ModuleStore:
    """Holds the live module list and applies edits to it."""

    def __init__(self, modules: Iterable[Module] | None = None) -> None:
        self._modules: tuple[Module, ...] = initial_modules()
        if modules is not None:
            self.set_modules(modules)

    @property
    def modules(self) -> tuple[Module, ...]:
        return self._modules

    def get(self, name: ModuleName | str) -> Module | None:
        key = ModuleName.parse(name)
        for module in self._modules:
            if module.name is key:
                return module
        return None

    def _replace(self, name: ModuleName | str, fn: Callable[[Module], Module]) -> None:
        key = ModuleName.parse(name)
        if key is None:
            logger.debug("Ignoring update for unknown module %r", name)
            return
        self._modules = tuple(fn(m) if m.name is key else m for m in self._modules)

    def set_modules(self, modules: Iterable[Module]) -> None:
        """
        Replace all modules, e.g. with an analysis result.

        Incoming modules are matched to the canonical names case-insensitively;
        missing ones become empty modules and unknown names are dropped.
        """
        modules = list(modules)
        by_name = index_by_name(modules)
        unknown = [m.name for m in modules if ModuleName.parse(m.name) is None]
        if unknown:
            logger.warning("Dropping modules with unknown names: %s", ", ".join(map(str, unknown)))
        self._modules = tuple(self._canonical(by_name.get(name), name) for name in ModuleName)

    @staticmethod
    def _canonical(module: Module | None, name: ModuleName) -> Module:
        if module is None:
            return empty_module(name)
        if module.name is name:
            return module
        return replace(module, name=name)

    def update_module(self, name: ModuleName | str, **changes: Any) -> None:
        """Shallow-merge changes (display_name, locked, tags) into one module."""
        if "name" in changes:
            raise ValidationError("Module names cannot be changed", field="name")
        unknown = set(changes) - _MODULE_FIELDS
        if unknown:
            raise ValidationError(
                f"Unknown module fields: {', '.join(sorted(unknown))}", field="module"
            )
        if "tags" in changes:
            changes["tags"] = tuple(changes["tags"])
        self._replace(name, lambda m: replace(m, **changes))

    def toggle_lock(self, name: ModuleName | str) -> None:
        self._replace(name, lambda m: replace(m, locked=not m.locked))

    def add_tag(self, name: ModuleName | str, tag: Tag) -> None:
        if not tag.text.strip():
            raise ValidationError("Tag text cannot be empty", field="text")
        tag = replace(tag, text=tag.text.strip(), weight=clamp_weight(tag.weight))
        self._replace(name, lambda m: replace(m, tags=m.tags + (tag,)))

    def remove_tag(self, name: ModuleName | str, tag_id: str) -> None:
        """Remove a tag by id. Unknown ids are ignored."""

        def _remove(module: Module) -> Module:
            if not any(t.id == tag_id for t in module.tags):
                return module
            return replace(module, tags=tuple(t for t in module.tags if t.id != tag_id))

        self._replace(name, _remove)

    def update_tag(self, name: ModuleName | str, tag_id: str, **changes: Any) -> None:
        """Shallow-merge changes (text, weight, hidden) into one tag. Unknown ids are ignored."""
        unknown = set(changes) - _TAG_FIELDS
        if unknown:
            raise ValidationError(f"Unknown tag fields: {', '.join(sorted(unknown))}", field="tag")
        if "text" in changes:
            text = str(changes["text"]).strip()
            if not text:
                raise ValidationError("Tag text cannot be empty", field="text")
            changes["text"] = text
        if "weight" in changes:
            changes["weight"] = clamp_weight(float(changes["weight"]))
        self._map_tag(name, tag_id, lambda t: replace(t, **changes))

    def adjust_tag_weight(self, name: ModuleName | str, tag_id: str, delta: float) -> None:
        """Step a tag's weight by delta, clamped to range. Locked modules are read-only."""
        module = self.get(name)
        if module is not None and module.locked:
            logger.debug("Module %s is locked; ignoring weight step", module.name.value)
            return
        self._map_tag(name, tag_id, lambda t: adjust_weight(t, delta))

    def _map_tag(self, name: ModuleName | str, tag_id: str, fn: Callable[[Tag], Tag]) -> None:
        def _update(module: Module) -> Module:
            if not any(t.id == tag_id for t in module.tags):
                return module
            return replace(module, tags=tuple(fn(t) if t.id == tag_id else t for t in module.tags))

        self._replace(name, _update)

    def editor_text(self, name: ModuleName | str, dialect: Dialect = "line") -> str:
        """Text shown in the module editor. Hidden tags are not shown."""
        module = self.get(name)
        if module is None:
            return ""
        return serialize_tags(module.tags, dialect, include_hidden=False)

    def apply_text(self, name: ModuleName | str, raw_text: str, dialect: Dialect = "line") -> None:
        """
        Commit edited editor text to a module.

        Ids of unchanged visible tags are kept. Hidden tags are not part of the
        editor text, so they are carried over after the parsed tags. Locked
        modules are read-only and ignore the edit.
        """
        module = self.get(name)
        if module is None:
            return
        if module.locked:
            logger.debug("Module %s is locked; ignoring text edit", module.name.value)
            return
        parsed = parse_tags(raw_text, dialect, previous=module.visible_tags())
        self.update_module(module.name, tags=tuple(parsed) + module.hidden_tags())
