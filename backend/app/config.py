"""
Service configuration.
Defaults live in DEFAULT_SETTINGS; any key can be overridden through the
environment (or a .env file) using its upper-cased name, e.g. UPLOAD_DIR.
"""

import os
from dotenv import load_dotenv

load_dotenv()

# Default settings
DEFAULT_SETTINGS = {
    # Storage areas
    "upload_dir": "data/uploads",
    "output_dir": "data/output",
    # Transform defaults (used when the form omits a value)
    "default_max_width": 1280,
    "default_max_height": 1280,
    "default_quality": 80,
    # Housekeeping
    "sweep_interval_seconds": 300,
    "sweep_max_age_seconds": 1800,
    # Workers
    "batch_timeout_seconds": 0,  # 0 = no wall-clock limit
    "worker_join_timeout_seconds": 5,
    # Logging
    "log_level": "INFO",
}


def _coerce(default, raw: str):
    if isinstance(default, bool):
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def load_settings(overrides: dict = None) -> dict:
    """Load settings from the environment, falling back to defaults."""
    result = DEFAULT_SETTINGS.copy()

    for key, default in DEFAULT_SETTINGS.items():
        raw = os.getenv(key.upper())
        if raw is None or not raw.strip():
            continue
        try:
            result[key] = _coerce(default, raw)
        except ValueError:
            # Keep the default for malformed values
            pass

    if overrides:
        result.update(overrides)
    return result
