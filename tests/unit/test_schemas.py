"""Unit tests for backend wire schemas."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from voidweaver.core.models import EngineType, Module, ModuleName, Tag
from voidweaver.core.schemas import (
    AnalyzeResponse,
    GenerateRequest,
    GenerateResponse,
    ModulePayload,
    TagPayload,
    to_modules,
)


def _request(**overrides):
    fields = {"prompt": "a", "resolution": "832x1216", "steps": 28, "scale": 6}
    fields.update(overrides)
    return GenerateRequest(**fields)


@pytest.mark.unit
class TestTagPayload:
    def test_missing_id_is_minted(self):
        tag = TagPayload(text="a").to_tag()
        assert tag is not None
        assert tag.id

    def test_null_weight_defaults(self):
        assert TagPayload.model_validate({"text": "a", "weight": None}).weight == 1.0

    def test_blank_text_is_dropped(self):
        assert TagPayload(text="  ").to_tag() is None

    def test_weight_is_kept_verbatim(self):
        assert TagPayload(text="a", weight=7).to_tag().weight == 7


@pytest.mark.unit
class TestModulePayload:
    def test_camel_case_input(self):
        payload = ModulePayload.model_validate(
            {"name": "Subject", "displayName": "Subj", "tags": [{"text": "girl"}]}
        )
        module = payload.to_module()
        assert module.name is ModuleName.SUBJECT
        assert module.display_name == "Subj"

    def test_missing_display_name_comes_from_catalog(self):
        module = ModulePayload(name="extra").to_module()
        assert module.display_name == "Extra Description"

    def test_null_tags(self):
        assert ModulePayload.model_validate({"name": "pose", "tags": None}).tags == []

    def test_unknown_name_returns_none(self):
        assert ModulePayload(name="lighting").to_module() is None

    def test_to_modules_skips_unknown(self):
        modules = to_modules([ModulePayload(name="pose"), ModulePayload(name="lighting")])
        assert [m.name for m in modules] == [ModuleName.POSE]

    def test_from_module_wire_shape(self):
        module = Module(
            name=ModuleName.POSE,
            display_name="Pose",
            locked=True,
            tags=(Tag(id="1", text="sit", weight=1.5, hidden=True),),
        )
        wire = ModulePayload.from_module(module).to_wire()
        assert wire == {
            "name": "pose",
            "displayName": "Pose",
            "locked": True,
            "tags": [{"id": "1", "text": "sit", "weight": 1.5, "hidden": True}],
        }


@pytest.mark.unit
class TestGenerateRequest:
    def test_wire_uses_camel_case_and_omits_none(self):
        wire = _request(novelai_api_key="k").to_wire()
        assert wire["novelaiApiKey"] == "k"
        assert wire["engine"] == "novelai"
        assert "googleCredentials" not in wire
        assert "image" not in wire

    def test_engine_value(self):
        assert _request(engine=EngineType.GOOGLE_IMAGEN).to_wire()["engine"] == "google-imagen"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"steps": 0},
            {"steps": 51},
            {"scale": 0.5},
            {"scale": 21},
            {"resolution": "832*1216"},
            {"strength": 1.0},
            {"prompt": ""},
        ],
    )
    def test_out_of_range_values_rejected(self, overrides):
        with pytest.raises(PydanticValidationError):
            _request(**overrides)


@pytest.mark.unit
class TestResponses:
    def test_analyze_response_null_raw_prompt(self):
        response = AnalyzeResponse.model_validate({"modules": [], "rawPrompt": None})
        assert response.raw_prompt == ""

    def test_generate_response_to_generated_image(self):
        response = GenerateResponse.model_validate(
            {"imageData": "aW1n", "sketchImage": "c2s=", "thinkingLog": ["a"]}
        )
        image = response.to_generated_image(prompt="p")
        assert image.image_data == "aW1n"
        assert image.thinking_log == ("a",)
        assert image.sketch_image == "c2s="
        assert image.prompt == "p"

    def test_generate_response_requires_image(self):
        with pytest.raises(PydanticValidationError):
            GenerateResponse.model_validate({"imageData": ""})
