"""
config.py — Configuration Module for the Schedule Grid

Defaults live here as module constants; deployments override them with
config/grid_settings.json and, for the backend connection, environment
variables:

  SHIFT_GRID_API_URL      base URL of the schedule service
  SHIFT_GRID_API_KEY      bearer token
  SHIFT_GRID_COMPANY_ID   tenant (company) id sent with every request
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_SETTINGS_PATH = DEFAULT_CONFIG_DIR / "grid_settings.json"

DEFAULT_START_TIME = "07:00"
MAX_HISTORY = 50
DEFAULT_TIMEOUT = 30

DEFAULT_SETTINGS: Dict[str, Any] = {
    "start_time":   DEFAULT_START_TIME,
    "max_history":  MAX_HISTORY,
    "api_url":      "",
    "api_key":      "",
    "company_id":   "",
    "timeout":      DEFAULT_TIMEOUT,
}

ENV_OVERRIDES: Dict[str, str] = {
    "api_url":    "SHIFT_GRID_API_URL",
    "api_key":    "SHIFT_GRID_API_KEY",
    "company_id": "SHIFT_GRID_COMPANY_ID",
}


def load_settings(settings_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load grid settings from JSON, merged over DEFAULT_SETTINGS.

    Unknown keys in the file are ignored. A missing file is not an error.
    """
    path = settings_path or DEFAULT_SETTINGS_PATH
    settings = dict(DEFAULT_SETTINGS)
    if not path.exists():
        logger.warning(f"Settings file not found: {path}. Using defaults.")
        return settings

    with open(path) as f:
        data = json.load(f)
    for key, value in data.items():
        if key in settings:
            settings[key] = value
        else:
            logger.debug(f"Ignoring unknown setting {key!r} in {path}")

    settings["max_history"] = int(settings["max_history"])
    settings["timeout"] = float(settings["timeout"])
    logger.info(f"Loaded grid settings from {path}")
    return settings


def get_api_settings(settings_path: Optional[Path] = None) -> Dict[str, Any]:
    """Backend connection settings; environment variables win over the file."""
    settings = load_settings(settings_path)
    for key, env_name in ENV_OVERRIDES.items():
        value = os.environ.get(env_name)
        if value:
            settings[key] = value
    return {
        "base_url":   settings["api_url"],
        "api_key":    settings["api_key"],
        "company_id": settings["company_id"],
        "timeout":    settings["timeout"],
    }
