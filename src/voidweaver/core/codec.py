"""
Weighted tag text codec.

Converts between a module's editable text and its structured tags. Two
dialects are supported:

- ``line``: one tag per line (the module editor).
- ``comma``: tags separated by commas or newlines (pasted prompts).

Each segment may carry a weight annotation ``W::text::`` (for example
``1.5::silver hair::``). The older ``text (×W)`` suffix form is still
accepted when reading. Malformed annotations never raise; they fall back to
the default weight.
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from collections.abc import Iterable, Sequence
from dataclasses import replace
from typing import Literal

from voidweaver.core.models import (
    DEFAULT_WEIGHT,
    WEIGHT_STEP,
    Tag,
    clamp_weight,
    is_default_weight,
    new_tag_id,
)
from voidweaver.logging_config import get_logger
from voidweaver.utils.exceptions import ValidationError

logger = get_logger(__name__)

Dialect = Literal["line", "comma"]
DIALECTS: tuple[str, ...] = ("line", "comma")

_WEIGHTED_RE = re.compile(r"^([\d.]+)::(.+)::$")
_LEGACY_RE = re.compile(r"^(.+?)\s*\(×([\d.]+)\)$")
_COMMA_SPLIT_RE = re.compile(r"[,\n]")

_SEPARATORS = {"line": "\n", "comma": ", "}
_ONE_DECIMAL = Decimal("0.1")


def _split(raw_text: str, dialect: Dialect) -> list[str]:
    if dialect == "line":
        return raw_text.split("\n")
    if dialect == "comma":
        return _COMMA_SPLIT_RE.split(raw_text)
    raise ValidationError(
        f"Unknown dialect: {dialect!r}. Must be one of: {', '.join(DIALECTS)}.", field="dialect"
    )


def _parse_number(raw: str) -> float:
    """Parse an annotation weight; anything unusable becomes the default weight."""
    try:
        value = float(raw)
    except ValueError:
        logger.debug("Unparseable weight %r, using default", raw)
        return DEFAULT_WEIGHT
    if not math.isfinite(value):
        return DEFAULT_WEIGHT
    return value


def parse_segment(segment: str) -> tuple[str, float] | None:
    """
    Parse one trimmed segment into (text, weight).

    Returns None when the segment (or the text inside its annotation) is blank.
    """
    segment = segment.strip()
    if not segment:
        return None

    text = segment
    weight = DEFAULT_WEIGHT

    match = _WEIGHTED_RE.match(segment)
    if match:
        weight = _parse_number(match.group(1))
        text = match.group(2).strip()
    else:
        legacy = _LEGACY_RE.match(segment)
        if legacy:
            text = legacy.group(1).strip()
            weight = _parse_number(legacy.group(2))

    if not text:
        return None
    return text, clamp_weight(weight)


def parse_tags(
    raw_text: str,
    dialect: Dialect = "line",
    previous: Iterable[Tag] = (),
) -> list[Tag]:
    """
    Parse editable text into tags.

    Args:
        raw_text: Text typed by the user or returned by a service
        dialect: "line" or "comma"
        previous: Tags the text was derived from. A parsed tag whose text
            matches a previous tag reuses that tag's id, so selection and
            identity survive re-parsing unchanged lines. Each previous id is
            reused at most once.

    Returns:
        Tags in the order they appear in the text. Empty segments are dropped.
    """
    available: dict[str, list[str]] = {}
    for tag in previous:
        available.setdefault(tag.text, []).append(tag.id)

    tags: list[Tag] = []
    for segment in _split(raw_text, dialect):
        parsed = parse_segment(segment)
        if parsed is None:
            continue
        text, weight = parsed
        ids = available.get(text)
        tag_id = ids.pop(0) if ids else new_tag_id()
        tags.append(Tag(id=tag_id, text=text, weight=weight))
    return tags


def format_weight(weight: float) -> str:
    """Format a weight with exactly one decimal digit, rounding exact halves up."""
    if not math.isfinite(weight):
        return str(weight)
    return str(Decimal(weight).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def format_tag(tag: Tag) -> str:
    """Render one tag: bare text at the default weight, ``W::text::`` otherwise."""
    if is_default_weight(tag.weight):
        return tag.text
    return f"{format_weight(tag.weight)}::{tag.text}::"


def serialize_tags(
    tags: Sequence[Tag],
    dialect: Dialect = "line",
    include_hidden: bool = True,
) -> str:
    """
    Render tags as editable text.

    Args:
        tags: Tags in display order
        dialect: "line" joins with newlines, "comma" with ", "
        include_hidden: When False (the editor view), hidden tags are left
            out. They still take part in prompt assembly.
    """
    if dialect not in _SEPARATORS:
        raise ValidationError(
            f"Unknown dialect: {dialect!r}. Must be one of: {', '.join(DIALECTS)}.",
            field="dialect",
        )
    rendered = [
        format_tag(tag)
        for tag in tags
        if tag.text.strip() and (include_hidden or not tag.hidden)
    ]
    return _SEPARATORS[dialect].join(rendered)


def adjust_weight(tag: Tag, delta: float) -> Tag:
    """Return a copy of tag with its weight moved by delta and clamped to range."""
    weight = clamp_weight(round(tag.weight + delta, 2))
    return replace(tag, weight=weight)


def increase_weight(tag: Tag) -> Tag:
    return adjust_weight(tag, WEIGHT_STEP)


def decrease_weight(tag: Tag) -> Tag:
    return adjust_weight(tag, -WEIGHT_STEP)
