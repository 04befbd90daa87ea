"""
Prompt assembly: flatten modules into the string sent for generation.

Module order, then tag order within each module, is preserved; engines give
earlier tags more emphasis.
"""

from collections.abc import Iterable
from typing import Protocol

from voidweaver.core.codec import format_tag
from voidweaver.core.models import EngineType, Tag

PROMPT_SEPARATOR = ", "


class HasTags(Protocol):
    @property
    def tags(self) -> tuple[Tag, ...]: ...


def _flatten(modules: Iterable[HasTags]) -> list[Tag]:
    return [tag for module in modules for tag in module.tags if tag.text.strip()]


def assemble_prompt(
    modules: Iterable[HasTags],
    engine: EngineType = EngineType.NOVELAI,
) -> str:
    """
    Build the generation prompt from modules.

    Tags at weight 1.0 (within 0.01) are emitted as bare text; others as
    ``W::text::`` with one decimal. Hidden tags are included. Lock flags are
    not consulted.

    Args:
        modules: Modules in canonical order
        engine: Target engine. All engines currently share the
            ``W::text::`` syntax; the argument selects future variants.

    Returns:
        The prompt, or an empty string when there are no tags.
    """
    return PROMPT_SEPARATOR.join(format_tag(tag) for tag in _flatten(modules))


def build_raw_prompt(modules: Iterable[HasTags]) -> str:
    """Comma-joined tag texts without weights (the copy-to-clipboard form)."""
    return PROMPT_SEPARATOR.join(tag.text for tag in _flatten(modules))
