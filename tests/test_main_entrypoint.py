"""Tests for CLI entrypoint wiring."""

from __future__ import annotations

import contextlib
import io
from pathlib import Path
import unittest
from unittest.mock import AsyncMock, patch

from termai.__main__ import main
from termai.exceptions import ConfigValidationError


class MainEntrypointTests(unittest.TestCase):
    """Validate top-level main() behavior."""

    def test_main_passes_flags_and_runs_app(self) -> None:
        with patch("termai.__main__.ensure_config_dir") as ensure_mock, patch(
            "termai.__main__.load_config", return_value={"loaded": True}
        ) as load_mock, patch("termai.__main__.TermAIApp") as app_cls_mock:
            main(
                [
                    "-p", "work",
                    "-f", "a.txt",
                    "--file", "b.png",
                    "-d", "src",
                    "-l", "old.chat",
                    "--config", "/tmp/termai.toml",
                ]
            )
            ensure_mock.assert_called_once()
            load_mock.assert_called_once_with(Path("/tmp/termai.toml"))
            app_cls_mock.assert_called_once_with(
                profile_name="work",
                files=["a.txt", "b.png"],
                context_dir="src",
                resume="old.chat",
                config={"loaded": True},
            )
            app_cls_mock.return_value.run.assert_called_once()

    def test_unknown_profile_exits_with_usage_error(self) -> None:
        stderr = io.StringIO()
        with patch("termai.__main__.ensure_config_dir"), patch(
            "termai.__main__.load_config", return_value={}
        ), patch(
            "termai.__main__.TermAIApp",
            side_effect=ConfigValidationError("Profile 'x' not found"),
        ), contextlib.redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as ctx:
                main(["-p", "x"])
        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("Profile 'x' not found", stderr.getvalue())

    def test_prompt_runs_headless_without_app(self) -> None:
        config = {"logging": {"level": "INFO"}}
        with patch("termai.__main__.ensure_config_dir"), patch(
            "termai.__main__.load_config", return_value=config
        ), patch("termai.__main__.configure_logging") as logging_mock, patch(
            "termai.__main__.run_prompt", new_callable=AsyncMock, return_value=0
        ) as prompt_mock, patch("termai.__main__.TermAIApp") as app_cls_mock:
            main(["-p", "work", "-f", "a.txt", "Explain this"])

        app_cls_mock.assert_not_called()
        logging_mock.assert_called_once_with(config["logging"])
        prompt_mock.assert_awaited_once_with(
            "Explain this", config=config, profile_name="work", files=["a.txt"]
        )

    def test_failed_prompt_sets_exit_code(self) -> None:
        with patch("termai.__main__.ensure_config_dir"), patch(
            "termai.__main__.load_config", return_value={"logging": {}}
        ), patch("termai.__main__.configure_logging"), patch(
            "termai.__main__.run_prompt", new_callable=AsyncMock, return_value=1
        ):
            with self.assertRaises(SystemExit) as ctx:
                main(["hi"])
        self.assertEqual(ctx.exception.code, 1)

    def test_prompt_rejects_interactive_only_flags(self) -> None:
        with patch("termai.__main__.run_prompt") as prompt_mock, contextlib.redirect_stderr(
            io.StringIO()
        ):
            with self.assertRaises(SystemExit) as ctx:
                main(["-l", "old.chat", "hi"])
        self.assertEqual(ctx.exception.code, 2)
        prompt_mock.assert_not_called()

    def test_version_flag_skips_app(self) -> None:
        stdout = io.StringIO()
        with patch("termai.__main__.TermAIApp") as app_cls_mock, contextlib.redirect_stdout(
            stdout
        ):
            main(["--version"])
        app_cls_mock.assert_not_called()
        self.assertTrue(stdout.getvalue().startswith("termai "))


if __name__ == "__main__":
    unittest.main()
