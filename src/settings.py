"""Static configuration for pulse-relay.

All user-editable settings (channels, rules, aggregation, dnd, logging) live
in a single JSON file for quick edits without touching Python. Secrets stay
in the environment (.env).
"""

import json
import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root unless PULSE_CONFIG points elsewhere.
CONFIG_PATH = os.getenv("PULSE_CONFIG") or os.path.join(PROJECT_ROOT, "config.json")


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


_CONFIG = _load_json_config()

# Expose the raw config; core.config.parse_router_config validates it.
CONFIG = _CONFIG

# Where to store delivery history and learned preferences.
_database = _CONFIG.get("database", {})
DB_PATH = _database.get("path") or os.path.join(os.path.dirname(__file__), "pulse.db")
if not os.path.isabs(DB_PATH):
    DB_PATH = os.path.join(PROJECT_ROOT, DB_PATH)

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
