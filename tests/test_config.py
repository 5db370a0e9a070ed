"""Tests for project configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from cellform.config import CONFIG_FILENAME, DEFAULT_CONFIG, load_config, strip_prefix


class TestLoadConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_user_values_override_defaults(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("max_workers: 4\nformula_prefix: ''\n")
        config = load_config(tmp_path)
        assert config["max_workers"] == 4
        assert config["formula_prefix"] == ""
        assert config["logging_enabled"] is True

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("")
        assert load_config(tmp_path) == DEFAULT_CONFIG

    def test_non_mapping_is_rejected(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="mapping"):
            load_config(tmp_path)

    def test_defaults_are_not_mutated(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILENAME).write_text("stop_on_error: true\n")
        load_config(tmp_path)
        assert DEFAULT_CONFIG["stop_on_error"] is False


class TestStripPrefix:
    @pytest.mark.parametrize(
        "text, prefix, expected",
        [
            ("=1+2", "=", "1+2"),
            ("  =A1", "=", "A1"),
            ("1+2", "=", "1+2"),
            ("=1", None, "=1"),
            ("=1", "", "=1"),
            ("==1", "=", "=1"),
        ],
    )
    def test_strip(self, text: str, prefix: str | None, expected: str) -> None:
        assert strip_prefix(text, prefix) == expected
