# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Settings and academic calendar for SIAKAD.

get_settings() reads process configuration from the environment;
load_term_calendar() reads per-term credit ceilings, GPA tiers and
submission windows from YAML.
"""

from siakad.core.config.settings import (
    APISettings,
    CORSSettings,
    DatabaseSettings,
    EnrollmentSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from siakad.core.config.terms import (
    GPATier,
    TermCalendar,
    TermConfig,
    build_term_calendar,
    load_term_calendar,
)
from siakad.core.config.yaml_loader import (
    YAMLLoadError,
    deep_merge,
    load_yaml,
)

__all__ = [
    "Settings",
    "get_settings",
    "clear_settings_cache",
    "DatabaseSettings",
    "EnrollmentSettings",
    "CORSSettings",
    "APISettings",
    "GPATier",
    "TermConfig",
    "TermCalendar",
    "build_term_calendar",
    "load_term_calendar",
    "load_yaml",
    "deep_merge",
    "YAMLLoadError",
]
