"""Unit tests for prompt assembly."""

import pytest

from voidweaver.core.assembler import assemble_prompt, build_raw_prompt
from voidweaver.core.catalog import initial_modules
from voidweaver.core.models import EngineType, Module, ModuleName, Tag


def _module(name: ModuleName, *tags: Tag, locked: bool = False) -> Module:
    return Module(name=name, display_name=name.value, locked=locked, tags=tags)


@pytest.mark.unit
class TestAssemblePrompt:
    def test_empty_modules_give_empty_prompt(self):
        assert assemble_prompt(initial_modules()) == ""

    def test_module_then_tag_order(self):
        modules = [
            _module(ModuleName.STYLE, Tag(id="1", text="anime"), Tag(id="2", text="cel shading")),
            _module(ModuleName.SUBJECT, Tag(id="3", text="girl", weight=1.5)),
        ]
        assert assemble_prompt(modules) == "anime, cel shading, 1.5::girl::"

    def test_hidden_and_locked_tags_are_included(self):
        modules = [
            _module(ModuleName.STYLE, Tag(id="1", text="masterpiece", hidden=True), locked=True),
            _module(ModuleName.POSE, Tag(id="2", text="sitting")),
        ]
        assert assemble_prompt(modules) == "masterpiece, sitting"

    def test_blank_tags_are_skipped(self):
        modules = [_module(ModuleName.STYLE, Tag(id="1", text=" "), Tag(id="2", text="a"))]
        assert assemble_prompt(modules) == "a"

    def test_engine_does_not_change_output(self):
        modules = [_module(ModuleName.STYLE, Tag(id="1", text="a", weight=2))]
        assert assemble_prompt(modules, EngineType.GOOGLE_IMAGEN) == assemble_prompt(modules)

    def test_near_default_weight_is_bare(self):
        modules = [_module(ModuleName.STYLE, Tag(id="1", text="a", weight=0.995))]
        assert assemble_prompt(modules) == "a"


@pytest.mark.unit
class TestBuildRawPrompt:
    def test_texts_without_weights(self):
        modules = [
            _module(ModuleName.STYLE, Tag(id="1", text="anime", weight=2)),
            _module(ModuleName.EXTRA, Tag(id="2", text="sparkles")),
        ]
        assert build_raw_prompt(modules) == "anime, sparkles"
