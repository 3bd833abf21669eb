"""Tests for configuration loading and validation."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
import unittest

from chatmux.config import (
    DEFAULT_CONFIG,
    DEFAULT_SYSTEM_PROMPT,
    is_first_run,
    load_config,
    save_config,
)
from chatmux.exceptions import ConfigValidationError


class ConfigTests(unittest.TestCase):
    """Validate config merge, aliases and failure behavior."""

    def test_missing_config_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            self.assertTrue(is_first_run(config_path))
            config = load_config(config_path)
            self.assertEqual(config.current_provider, "")
            self.assertEqual(config.settings.username, "User")
            self.assertEqual(config.settings.conversation_retention_days, 30)
            self.assertTrue(config.settings.output_glamour)
            self.assertEqual(config.auxiliary.provider, DEFAULT_CONFIG["auxiliary"]["provider"])
            self.assertEqual(config.current_system_prompt, DEFAULT_SYSTEM_PROMPT)
            self.assertEqual(config.http.timeout_seconds, 60.0)

    def test_partial_config_overrides_selected_values(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                """
api_keys:
  Groq: " gsk-test "
current_provider: GROQ
current_model: llama-3.3-70b-versatile
settings:
  username: Ada
http:
  timeout_seconds: 5
                """.strip(),
                encoding="utf-8",
            )
            config = load_config(config_path)
            self.assertEqual(config.current_provider, "groq")
            self.assertEqual(config.credential_for("groq"), "gsk-test")
            self.assertEqual(config.credential_for("openai"), "")
            self.assertEqual(config.settings.username, "Ada")
            self.assertEqual(config.http.timeout_seconds, 5.0)
            self.assertEqual(config.http.enhancer_timeout_seconds, 15.0)
            self.assertEqual(config.logging.level, "INFO")
            self.assertEqual(config.validate_selection(), [])

    def test_legacy_setting_spellings_are_accepted(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                """
settings:
  conversationretention: 7
  outputglamour: false
  theme: dracula
                """.strip(),
                encoding="utf-8",
            )
            config = load_config(config_path)
            self.assertEqual(config.settings.conversation_retention_days, 7)
            self.assertFalse(config.settings.output_glamour)
            self.assertEqual(config.settings.theme.name, "dracula")

    def test_system_prompts_replace_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                """
system_prompts:
  - title: Pirate
    content: Talk like a pirate.
                """.strip(),
                encoding="utf-8",
            )
            config = load_config(config_path)
            self.assertEqual([p.title for p in config.system_prompts], ["Pirate"])
            self.assertEqual(config.current_system_prompt, "Talk like a pirate.")

    def test_invalid_values_raise(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                "http:\n  timeout_seconds: -1\n", encoding="utf-8"
            )
            with self.assertRaises(ConfigValidationError):
                load_config(config_path)

    def test_malformed_yaml_raises(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text("api_keys: [unclosed\n", encoding="utf-8")
            with self.assertRaises(ConfigValidationError):
                load_config(config_path)

    def test_non_mapping_document_raises(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text("- just\n- a list\n", encoding="utf-8")
            with self.assertRaises(ConfigValidationError):
                load_config(config_path)

    def test_provider_override_rejects_bad_scheme(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config_path.write_text(
                "providers:\n  openai:\n    base_url: ftp://example.com\n",
                encoding="utf-8",
            )
            with self.assertRaises(ConfigValidationError):
                load_config(config_path)

    def test_save_then_load_preserves_selection(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.yaml"
            config = load_config(config_path)
            config.current_provider = "anthropic"
            config.current_model = "claude-x"
            config.api_keys["anthropic"] = "sk-ant"
            save_config(config, config_path)

            reloaded = load_config(config_path)
            self.assertEqual(reloaded.current_provider, "anthropic")
            self.assertEqual(reloaded.current_model, "claude-x")
            self.assertEqual(reloaded.credential_for("anthropic"), "sk-ant")
            self.assertFalse(is_first_run(config_path))
            if os.name == "posix":
                self.assertEqual(config_path.stat().st_mode & 0o777, 0o600)


if __name__ == "__main__":
    unittest.main()
