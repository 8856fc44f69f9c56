"""
Configuration module for evidencegate.

Centralizes runtime settings with environment variable support. The method
registry itself is code, not configuration: it is fixed at import.
"""

import os
from typing import Dict, Optional

from .taxonomy import Mode

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("EVIDENCEGATE_ENV", "dev")  # dev|stage|prod

# Logging
LOG_LEVEL = os.getenv("EVIDENCEGATE_LOG_LEVEL", "INFO")
LOG_JSON = os.getenv("EVIDENCEGATE_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE: Optional[str] = os.getenv("EVIDENCEGATE_LOG_FILE") or None

# Wizard run mode used when a caller does not state one
DEFAULT_MODE = os.getenv("EVIDENCEGATE_DEFAULT_MODE", Mode.PRODUCTION.value)

# Tenant stamped on seal requests when the caller does not supply one
DEFAULT_TENANT_ID = os.getenv("EVIDENCEGATE_TENANT_ID", "DEFAULT")


# ============================================================
# Validation
# ============================================================

def validate_config() -> Dict[str, bool]:
    """
    Check that configured values are usable.
    Returns dict of setting -> ok.
    """
    return {
        "env": ENV in ("dev", "stage", "prod"),
        "log_level": LOG_LEVEL.upper() in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        "default_mode": DEFAULT_MODE in (Mode.SIMULATION.value, Mode.PRODUCTION.value),
        "tenant_id": bool(DEFAULT_TENANT_ID.strip()),
    }


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("EVIDENCEGATE_DEBUG", "").lower() in ("1", "true", "yes")


def default_mode() -> str:
    """Run mode for callers that omit one; unknown values fall back to simulation."""
    if DEFAULT_MODE in (Mode.SIMULATION.value, Mode.PRODUCTION.value):
        return DEFAULT_MODE
    return Mode.SIMULATION.value
