"""
Reconcile modules returned by the refinement service with the current set.

The refinement service returns a partial list of modules whose names may
differ in case from ours. Names are normalized with ModuleName.parse before
lookup, so matching is case-insensitive by contract.
"""

from collections.abc import Iterable, Sequence
from dataclasses import replace

from voidweaver.core.models import Module, ModuleName
from voidweaver.logging_config import get_logger

logger = get_logger(__name__)


def index_by_name(modules: Iterable[Module]) -> dict[ModuleName, Module]:
    """Key modules by normalized name. The first module with a given name wins."""
    indexed: dict[ModuleName, Module] = {}
    for module in modules:
        key = ModuleName.parse(module.name)
        if key is None:
            logger.debug("Ignoring module with unknown name %r", module.name)
            continue
        indexed.setdefault(key, module)
    return indexed


def merge_refinement(
    current: Sequence[Module],
    incoming: Iterable[Module],
) -> tuple[Module, ...]:
    """
    Merge a refinement result into the current modules.

    - Result order is always the order of ``current``.
    - Locked modules are returned unchanged; incoming data for them is dropped.
    - An unlocked module with a matching incoming module is replaced by it
      (tags and display name). ``locked`` is never taken from the incoming
      module; it keeps the current value.
    - An unlocked module with no match is returned unchanged.
    """
    by_name = index_by_name(incoming)
    merged: list[Module] = []
    for module in current:
        if module.locked:
            merged.append(module)
            continue
        replacement = by_name.get(module.name)
        if replacement is None:
            merged.append(module)
            continue
        logger.debug(
            "Refined module %s: %d -> %d tags",
            module.name.value,
            len(module.tags),
            len(replacement.tags),
        )
        merged.append(replace(replacement, name=module.name, locked=module.locked))
    return tuple(merged)
