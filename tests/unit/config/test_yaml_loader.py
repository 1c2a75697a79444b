# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for YAML loader utilities."""

from pathlib import Path

import pytest

from siakad.core.config.yaml_loader import YAMLLoadError, deep_merge, load_yaml


class TestLoadYaml:
    """Tests for load_yaml function."""

    def test_load_valid_yaml_file(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "terms.yaml"
        yaml_file.write_text('defaults:\n  max_credits: 24\nterms:\n  "2025/1": {}\n')

        result = load_yaml(yaml_file)

        assert result == {"defaults": {"max_credits": 24}, "terms": {"2025/1": {}}}

    def test_comment_only_file_returns_empty_dict(self, tmp_path: Path) -> None:
        """Test that YAML files with only comments return empty dict."""
        yaml_file = tmp_path / "comments.yaml"
        yaml_file.write_text("# no terms configured yet\n")

        assert load_yaml(yaml_file) == {}

    def test_list_root_raises_error(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- 2025/1\n- 2025/2\n")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "YAML root must be a mapping" in str(exc_info.value)

    def test_nonexistent_file_raises_error(self, tmp_path: Path) -> None:
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path / "nonexistent.yaml")

        assert "File does not exist" in str(exc_info.value)
        assert exc_info.value.path == tmp_path / "nonexistent.yaml"

    def test_directory_instead_of_file_raises_error(self, tmp_path: Path) -> None:
        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(tmp_path)

        assert "Path is not a file" in str(exc_info.value)

    def test_invalid_syntax_raises_error(self, tmp_path: Path) -> None:
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("terms: value\n  invalid indentation")

        with pytest.raises(YAMLLoadError) as exc_info:
            load_yaml(yaml_file)

        assert "Invalid YAML syntax" in str(exc_info.value)


class TestDeepMerge:
    """Tests for deep_merge function."""

    def test_override_takes_precedence(self) -> None:
        result = deep_merge({"max_credits": 24, "a": 1}, {"max_credits": 9})

        assert result == {"max_credits": 9, "a": 1}

    def test_nested_dicts_are_merged_recursively(self) -> None:
        base = {"program_max_credits": {"TI-S1": 24, "SI-S1": 22}}
        override = {"program_max_credits": {"SI-S1": 20, "MA-S1": 21}}

        result = deep_merge(base, override)

        assert result == {"program_max_credits": {"TI-S1": 24, "SI-S1": 20, "MA-S1": 21}}

    def test_lists_are_replaced(self) -> None:
        base = {"gpa_tiers": [{"min_gpa": 0.0, "max_credits": 15}]}

        assert deep_merge(base, {"gpa_tiers": []}) == {"gpa_tiers": []}

    def test_original_dicts_not_modified(self) -> None:
        base = {"a": 1, "nested": {"b": 2}}
        override = {"a": 10, "nested": {"c": 3}}

        deep_merge(base, override)

        assert base == {"a": 1, "nested": {"b": 2}}
