"""
imeiwatch/config.py
Config with defaults. Persists to imeiwatch_config.json in the project root.
IMEIWATCH_API_URL in the environment overrides the stored api_url.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "imeiwatch_config.json"
API_URL_ENV = "IMEIWATCH_API_URL"

DEFAULT_CONFIG = {
    "api_url": "http://localhost:3001",
    "timeout_sec": 120,
    "default_threshold": None,      # None → start at the batch's max days offline
    "export_dir": ".",
}


def _config_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path.cwd()
    return root / CONFIG_FILENAME


def load_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from imeiwatch_config.json. Returns defaults if missing."""
    path = _config_path(project_root)
    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return {**DEFAULT_CONFIG, **data}
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Config load failed: {e}")
    return dict(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], project_root: Optional[Path] = None) -> Path:
    """Persist config to imeiwatch_config.json."""
    path = _config_path(project_root)
    path.write_text(json.dumps(config, indent=2), encoding="utf-8")
    return path


def ensure_config(project_root: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load config and apply environment overrides.
    Returns merged config.
    """
    config = load_config(project_root)
    env_url = os.environ.get(API_URL_ENV)
    if env_url:
        config["api_url"] = env_url
        logger.info(f"Using lookup service from {API_URL_ENV}: {env_url}")
    return config
