"""Tests for call-script templates."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from voicecall.calls.templates import TemplateEngine, render
from voicecall.config import DEFAULT_CATALOG_DIR
from voicecall.shared.exceptions import NotFoundError, TemplateNotFoundError


class TestRender:
    def test_substitutes_multiple_placeholders(self) -> None:
        assert render({"a": "{{x}}-{{y}}"}, {"x": "1", "y": "2"}) == {"a": "1-2"}

    def test_unknown_placeholders_stay_verbatim(self) -> None:
        template = {"greeting": "Hello {{name}}"}

        once = render(template, {})
        twice = render(once, {})

        assert once == {"greeting": "Hello {{name}}"}
        assert twice == once

    def test_recurses_into_lists_and_nested_objects(self) -> None:
        template = {
            "model": {"messages": [{"content": "Hi {{name}}"}, "{{name}}!"]},
            "tags": ["{{a}}", ["{{b}}"]],
        }

        result = render(template, {"name": "Taro", "a": "A", "b": "B"})

        assert result == {
            "model": {"messages": [{"content": "Hi Taro"}, "Taro!"]},
            "tags": ["A", ["B"]],
        }

    def test_non_string_scalars_pass_through(self) -> None:
        template = {"n": 3, "f": 1.5, "flag": True, "none": None}

        assert render(template, {"n": "x"}) == template

    def test_numeric_context_values_are_stringified(self) -> None:
        assert render("{{count}} slots", {"count": 3}) == "3 slots"

    @pytest.mark.parametrize(
        "value,expected",
        [(1.0, "1"), (2.5, "2.5"), (True, "true"), (False, "false"), (0, "0")],
    )
    def test_context_values_render_like_json(self, value, expected: str) -> None:
        assert render("x={{v}}", {"v": value}) == f"x={expected}"

    def test_keys_are_not_substituted(self) -> None:
        assert render({"{{x}}": "{{x}}"}, {"x": "1"}) == {"{{x}}": "1"}

    def test_non_identifier_placeholders_are_ignored(self) -> None:
        assert render("{{ name }} {{na-me}}", {"name": "x"}) == "{{ name }} {{na-me}}"

    def test_input_tree_is_not_mutated(self) -> None:
        template = {"a": ["{{x}}"]}

        render(template, {"x": "1"})

        assert template == {"a": ["{{x}}"]}

    def test_deterministic(self) -> None:
        template = {"a": "{{x}} {{y}}", "b": ["{{x}}"]}
        context = {"x": "1"}

        assert render(template, context) == render(template, context)


class TestTemplateEngine:
    def test_load_renders_catalog_entry(self, catalog_dir: Path) -> None:
        engine = TemplateEngine(catalog_dir)

        result = engine.load("default", {"name": "Taro"})

        assert result["firstMessage"] == "Hello Taro"
        assert result["model"]["messages"][0]["content"] == "Call about {{purpose}}"

    def test_unknown_template_is_not_found(self, catalog_dir: Path) -> None:
        engine = TemplateEngine(catalog_dir)

        with pytest.raises(TemplateNotFoundError) as exc_info:
            engine.load("does-not-exist", {})

        assert str(exc_info.value) == "Template not found: does-not-exist"
        assert isinstance(exc_info.value, NotFoundError)
        assert not isinstance(exc_info.value, OSError)

    @pytest.mark.parametrize("name", ["../default", "sub/default", ".hidden", ""])
    def test_names_outside_catalog_are_not_found(self, catalog_dir: Path, name: str) -> None:
        with pytest.raises(TemplateNotFoundError):
            TemplateEngine(catalog_dir).load(name, {})

    def test_malformed_json_propagates_unchanged(self, catalog_dir: Path) -> None:
        (catalog_dir / "broken.json").write_text("{not json", encoding="utf-8")

        with pytest.raises(json.JSONDecodeError):
            TemplateEngine(catalog_dir).load("broken", {})

    def test_available_lists_catalog(self, catalog_dir: Path) -> None:
        (catalog_dir / "second.json").write_text("{}", encoding="utf-8")

        assert TemplateEngine(catalog_dir).available() == ["default", "second"]

    def test_packaged_catalog(self) -> None:
        engine = TemplateEngine(DEFAULT_CATALOG_DIR)

        assert {"default", "clinic-blood-test"} <= set(engine.available())

        clinic = engine.load(
            "clinic-blood-test",
            {
                "patientName": "山田太郎",
                "clinicName": "宮下クリニック",
                "preferredDate": "2026年2月15日",
                "purpose": "血液検査",
            },
        )
        system_prompt = clinic["model"]["messages"][0]["content"]
        assert "宮下クリニック" in system_prompt
        assert "{{" not in json.dumps(clinic, ensure_ascii=False)
