# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reading YAML configuration files.

The academic term calendar (config/terms.yaml) is read through here:
load_yaml parses one file into a mapping and deep_merge lays per-term
entries over the shared ``defaults`` section.
"""

from pathlib import Path
from typing import Any

import yaml


class YAMLLoadError(Exception):
    """A configuration file is missing, unreadable or not a YAML mapping.

    Attributes:
        path: File that failed.
        reason: What went wrong.
    """

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load YAML file '{path}': {reason}")


def load_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML file whose root is a mapping.

    Args:
        path: File to read.

    Returns:
        Parsed mapping; an empty or comment-only file gives ``{}``.

    Raises:
        YAMLLoadError: If the path is not a readable file, the YAML is
            malformed, or the root is not a mapping.
    """
    if not path.is_file():
        raise YAMLLoadError(path, "Path is not a file" if path.exists() else "File does not exist")

    try:
        with path.open(encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except OSError as e:
        raise YAMLLoadError(path, f"Cannot read file: {e}") from e
    except yaml.YAMLError as e:
        raise YAMLLoadError(path, f"Invalid YAML syntax: {e}") from e

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise YAMLLoadError(path, f"YAML root must be a mapping, got {type(parsed).__name__}")
    return parsed


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Lay ``override`` over ``base``, recursing into nested mappings.

    Lists and scalars in ``override`` replace the base value outright, so a
    term can clear inherited GPA tiers with ``gpa_tiers: []``. Neither
    argument is modified.

    Example:
        >>> deep_merge({"program_max_credits": {"TI-S1": 24}}, {"program_max_credits": {"SI-S1": 22}})
        {'program_max_credits': {'TI-S1': 24, 'SI-S1': 22}}
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged
