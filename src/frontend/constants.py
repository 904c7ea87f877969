"""Shared constants for the Textual UI."""

from __future__ import annotations

PULSE_GREEN = "#3DDC84"
# Seconds between status table refreshes.
REFRESH_SECONDS = 1.0
