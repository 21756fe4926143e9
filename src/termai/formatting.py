"""Content-type aware rendering of finished assistant replies."""

from __future__ import annotations

from enum import Enum
import json

from rich.console import RenderableType
from rich.markdown import Markdown
from rich.syntax import Syntax


class ContentFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"
    XML = "xml"
    MARKDOWN = "markdown"
    PLAIN = "plain"


_MARKDOWN_MARKERS = ("```", "# ", "## ", "- ", "* ")


def detect_format(content: str) -> ContentFormat:
    """Guess how a reply should be rendered from its text."""
    trimmed = content.strip()
    if not trimmed:
        return ContentFormat.PLAIN

    if (trimmed.startswith("{") and trimmed.endswith("}")) or (
        trimmed.startswith("[") and trimmed.endswith("]")
    ):
        try:
            json.loads(trimmed)
            return ContentFormat.JSON
        except json.JSONDecodeError:
            pass

    if trimmed.startswith("---") or ": " in trimmed or ":\n" in trimmed:
        yaml_lines = sum(
            1
            for line in trimmed.split("\n")
            if ": " in line and not line.strip().startswith("#")
        )
        if yaml_lines > 2:
            return ContentFormat.YAML

    if trimmed.startswith("<?xml") or (
        trimmed.startswith("<") and trimmed.endswith(">") and trimmed.count("<") > 2
    ):
        return ContentFormat.XML

    if any(marker in trimmed for marker in _MARKDOWN_MARKERS) or (
        "[" in trimmed and "](" in trimmed
    ):
        return ContentFormat.MARKDOWN

    return ContentFormat.PLAIN


def render_response(content: str, *, theme: str = "monokai") -> RenderableType:
    """Return a rich renderable for a completed reply."""
    fmt = detect_format(content)
    if fmt is ContentFormat.JSON:
        pretty = json.dumps(json.loads(content.strip()), indent=2, ensure_ascii=False)
        return Syntax(pretty, "json", theme=theme, word_wrap=True)
    if fmt is ContentFormat.YAML:
        return Syntax(content, "yaml", theme=theme, word_wrap=True)
    if fmt is ContentFormat.XML:
        return Syntax(content, "xml", theme=theme, word_wrap=True)
    # Markdown handles plain text as well.
    return Markdown(content.rstrip())
