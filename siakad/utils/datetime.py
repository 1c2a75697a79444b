# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Time helpers.

Moments (deadlines, commit times, audit columns) are timezone-aware UTC
datetimes. Class meeting times on schedule slots are plain wall-clock
``datetime.time`` values and are only ever formatted, never converted.
"""

from datetime import datetime, time, timezone


def utc_now() -> datetime:
    """Current moment as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalize a datetime to aware UTC.

    SQLite hands timestamps back without tzinfo; those are taken to be UTC
    already. Aware values are converted. None passes through.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_clock(value: time) -> str:
    """Render a class time as ``HH:MM``."""
    return value.strftime("%H:%M")
