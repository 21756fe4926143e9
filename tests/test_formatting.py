"""Tests for reply format detection and rendering."""

from __future__ import annotations

import unittest

from rich.markdown import Markdown
from rich.syntax import Syntax

from termai.formatting import ContentFormat, detect_format, render_response


class DetectFormatTests(unittest.TestCase):
    def test_detects_each_format(self) -> None:
        cases = {
            '{"a": 1, "b": [1, 2]}': ContentFormat.JSON,
            "name: app\nversion: 1\nport: 80\nhost: x": ContentFormat.YAML,
            "<?xml version='1.0'?><a><b/></a>": ContentFormat.XML,
            "# Title\n\nSome text": ContentFormat.MARKDOWN,
            "see [docs](http://x)": ContentFormat.MARKDOWN,
            "just words": ContentFormat.PLAIN,
            "   ": ContentFormat.PLAIN,
        }
        for content, expected in cases.items():
            with self.subTest(content=content):
                self.assertEqual(detect_format(content), expected)

    def test_invalid_json_is_not_json(self) -> None:
        self.assertNotEqual(detect_format("{not: json}"), ContentFormat.JSON)


class RenderResponseTests(unittest.TestCase):
    def test_json_is_pretty_printed_syntax(self) -> None:
        rendered = render_response('{"a":1}')
        self.assertIsInstance(rendered, Syntax)
        self.assertIn('"a": 1', rendered.code)

    def test_prose_uses_markdown(self) -> None:
        self.assertIsInstance(render_response("hello there"), Markdown)


if __name__ == "__main__":
    unittest.main()
