"""SIAKAD Enrollment Backend.

Academic enrollment (KRS) consistency engine for the SIAKAD campus
academic-information system: schedule conflict detection, prerequisite
checks, seat capacity and credit ceilings behind a REST API.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
