# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Academic term calendar loaded from YAML.

Each academic term (``YYYY/S``, e.g. ``2025/1`` for the odd semester)
carries the settings the enrollment engine needs for that term: the
default credit (SKS) ceiling, per-program overrides, optional GPA tiers
and the add/drop deadline after which KRS edits are refused.

File layout (config/terms.yaml):

    defaults:
      max_credits: 24
    terms:
      "2025/1":
        add_drop_deadline: "2025-09-15T23:59:59+07:00"
        program_max_credits:
          IF-S1: 24
        gpa_tiers:
          - {min_gpa: 3.0, max_credits: 24}
          - {min_gpa: 0.0, max_credits: 18}

Usage:
    from siakad.core.config.terms import load_term_calendar

    calendar = load_term_calendar(Path("config/terms.yaml"))
    term = calendar.get("2025/1")
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from siakad.core.config.yaml_loader import YAMLLoadError, deep_merge, load_yaml
from siakad.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

TERM_CODE_PATTERN = re.compile(r"^\d{4}/[1-3]$")


class GPATier(BaseModel):
    """Credit ceiling granted to students whose previous-term IPS is at least min_gpa."""

    min_gpa: float = Field(ge=0.0, le=4.0)
    max_credits: int = Field(ge=1)


class TermConfig(BaseModel):
    """Enrollment configuration for one academic term.

    Attributes:
        code: Term code, ``YYYY/S``.
        max_credits: Default per-student credit ceiling.
        program_max_credits: Ceiling overrides keyed by program id.
        gpa_tiers: Optional IPS-based ceilings, checked highest tier first.
        add_drop_deadline: Moment after which KRS changes are refused.
    """

    code: str
    max_credits: int = Field(default=24, ge=1)
    program_max_credits: dict[str, int] = Field(default_factory=dict)
    gpa_tiers: list[GPATier] = Field(default_factory=list)
    add_drop_deadline: datetime | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, value: str) -> str:
        """Require the ``YYYY/S`` term code format."""
        if not TERM_CODE_PATTERN.match(value):
            raise ValueError(f"Invalid term code '{value}', expected YYYY/S")
        return value

    @field_validator("gpa_tiers")
    @classmethod
    def sort_tiers(cls, value: list[GPATier]) -> list[GPATier]:
        """Keep tiers ordered from the highest threshold down."""
        return sorted(value, key=lambda tier: tier.min_gpa, reverse=True)

    def is_open(self, at: datetime | None = None) -> bool:
        """Check whether KRS changes are still accepted.

        Args:
            at: Moment to check, defaults to now.

        Returns:
            True if there is no deadline or it has not passed.
        """
        if self.add_drop_deadline is None:
            return True
        moment = ensure_utc(at) if at else utc_now()
        return moment <= ensure_utc(self.add_drop_deadline)


class TermCalendar:
    """Lookup of term configurations by term code."""

    def __init__(self, terms: dict[str, TermConfig]) -> None:
        self._terms = dict(terms)

    def get(self, code: str) -> TermConfig | None:
        """Get configuration for a term, or None if the term is unknown."""
        return self._terms.get(code)

    def codes(self) -> list[str]:
        """List configured term codes in order."""
        return sorted(self._terms)

    def __contains__(self, code: object) -> bool:
        return code in self._terms

    def __len__(self) -> int:
        return len(self._terms)


def build_term_calendar(
    raw: dict[str, Any],
    default_max_credits: int = 24,
) -> TermCalendar:
    """Build a TermCalendar from already-parsed configuration.

    Args:
        raw: Mapping with optional ``defaults`` and ``terms`` sections.
        default_max_credits: Ceiling used when neither the term nor the
            defaults section sets one.

    Returns:
        TermCalendar with one TermConfig per term.

    Raises:
        ValueError: If a term entry fails validation.
    """
    defaults = {"max_credits": default_max_credits, **(raw.get("defaults") or {})}
    terms: dict[str, TermConfig] = {}

    for code, entry in (raw.get("terms") or {}).items():
        merged = deep_merge(defaults, entry or {})
        merged["code"] = str(code)
        try:
            terms[str(code)] = TermConfig.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration for term {code}: {e}") from e

    return TermCalendar(terms)


def load_term_calendar(path: Path, default_max_credits: int = 24) -> TermCalendar:
    """Load the academic term calendar from a YAML file.

    A missing file yields an empty calendar so that a fresh deployment
    starts without configured terms instead of failing.

    Args:
        path: Path to the terms YAML file.
        default_max_credits: Fallback credit ceiling.

    Returns:
        Loaded TermCalendar.

    Raises:
        YAMLLoadError: If the file exists but cannot be parsed.
        ValueError: If a term entry is invalid.
    """
    if not path.exists():
        logger.warning("Term calendar not found at %s, no terms configured", path)
        return TermCalendar({})

    raw = load_yaml(path)
    calendar = build_term_calendar(raw, default_max_credits=default_max_credits)
    logger.info("Loaded %d academic terms from %s", len(calendar), path)
    return calendar


__all__ = [
    "GPATier",
    "TermCalendar",
    "TermConfig",
    "YAMLLoadError",
    "build_term_calendar",
    "load_term_calendar",
]
