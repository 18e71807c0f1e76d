"""
Configuration loader — reads cpk.conf into a CpkConfig.

cpk.conf is YAML, validated with Pydantic. The older whitespace
format (``cpk_home_dir /var/lib/cpk`` one per line) is still
accepted so existing hosts keep working.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml

from cpk.core.errors import ConfigError
from cpk.core.models.config import CpkConfig

logger = logging.getLogger(__name__)

# Default config location
DEFAULT_CONFIG_FILE = Path("/etc/cpk.conf")
CONFIG_ENV_VAR = "CPK_CONFIG"

# Keys from the legacy format → CpkConfig field names
_KEY_ALIASES = {
    "cpk_home_dir": "home_dir",
    "cpk_repo_url": "repo_url",
    "cpk_color_mode": "color_mode",
}


def default_config_path() -> Path:
    """Config path from $CPK_CONFIG, or /etc/cpk.conf."""
    env = os.environ.get(CONFIG_ENV_VAR)
    return Path(env) if env else DEFAULT_CONFIG_FILE


def load_config(path: Path | None = None) -> CpkConfig:
    """Load and validate cpk configuration.

    Args:
        path: Explicit path to cpk.conf. If None, uses default_config_path().

    Returns:
        Validated, frozen CpkConfig.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None:
        path = default_config_path()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading cpk config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        # "key value" lines with stray colons confuse YAML; try the old format
        data = _parse_legacy(raw)
        if not data:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    elif isinstance(data, str):
        # A file of "key value" lines reads as one folded YAML scalar
        data = _parse_legacy(raw) or data

    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "cpk" key or be flat
    if isinstance(data.get("cpk"), dict):
        data = data["cpk"]

    data = {_KEY_ALIASES.get(k, k): v for k, v in data.items()}

    try:
        config = CpkConfig.model_validate(data)
    except Exception as e:
        raise ConfigError(f"Invalid cpk configuration: {e}") from e

    logger.info("Loaded config: home=%s repo=%s", config.home_dir, config.repo_url)
    return config


def _parse_legacy(raw: str) -> dict[str, object]:
    """Parse the older ``key value`` line format.

    Only the three ``cpk_*`` keys are read; anything else is ignored.
    """
    data: dict[str, object] = {}
    for line in raw.splitlines():
        parts = line.split()
        if len(parts) < 2 or parts[0].startswith("#"):
            continue
        key, value = parts[0], parts[1]
        if key not in _KEY_ALIASES:
            logger.debug("Ignoring unknown config key %s", key)
            continue
        if key == "cpk_color_mode":
            data[key] = value == "true"
        else:
            data[key] = value
    return data
