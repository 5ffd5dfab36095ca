"""
Call-script templates.

A template is a JSON document <catalog_dir>/<name>.json holding an assistant
config. String values may contain {{identifier}} placeholders; placeholders
without a matching context key are left verbatim.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping, Union

from voicecall.config import get_settings
from voicecall.shared.exceptions import TemplateNotFoundError

JSONValue = Union[str, int, float, bool, None, list["JSONValue"], dict[str, "JSONValue"]]

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)


def render(value: JSONValue, context: Mapping[str, Any]) -> JSONValue:
    """Substitute placeholders in every string of a JSON tree.

    Returns a new tree; the input is not modified.
    """
    if isinstance(value, str):
        return PLACEHOLDER_PATTERN.sub(lambda m: _lookup(m, context), value)
    if isinstance(value, list):
        return [render(item, context) for item in value]
    if isinstance(value, dict):
        return {key: render(item, context) for key, item in value.items()}
    return value


def _lookup(match: re.Match[str], context: Mapping[str, Any]) -> str:
    replacement = context.get(match.group(1))
    if replacement is None:
        return match.group(0)
    return _format(replacement)


def _format(value: Any) -> str:
    """Stringify a context value the way JSON prints it (1.0 -> "1", True -> "true")."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class TemplateEngine:
    """Loads named call scripts from a catalog directory."""

    def __init__(self, catalog_dir: Path | str | None = None) -> None:
        self._catalog_dir = Path(catalog_dir) if catalog_dir else get_settings().catalog_dir

    @property
    def catalog_dir(self) -> Path:
        return self._catalog_dir

    def available(self) -> list[str]:
        return sorted(path.stem for path in self._catalog_dir.glob("*.json"))

    def load(self, template_name: str, context: Mapping[str, Any] | None = None) -> JSONValue:
        """Load a template and render it with context.

        Raises:
            TemplateNotFoundError: No catalog entry with that name.
        """
        # Names address files directly inside the catalog, nothing else
        if not template_name or Path(template_name).name != template_name or template_name.startswith("."):
            raise TemplateNotFoundError(template_name)

        path = self._catalog_dir / f"{template_name}.json"
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TemplateNotFoundError(template_name) from None

        return render(json.loads(content), context or {})
