import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional

# Environment variable that points at an alternative configuration file
CONFIG_ENV_VAR = "IMPEDANCE_ANALYSIS_CONFIG"

REQUIRED_SECTIONS = ("analysis", "files")


def default_config_path() -> Path:
    """config.yaml next to this module, unless overridden via the environment."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return Path(__file__).resolve().parent / "config.yaml"


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load the YAML analysis configuration.

    Args:
        config_path: Optional explicit path to the configuration file. If None,
                     use IMPEDANCE_ANALYSIS_CONFIG or the packaged config.yaml.

    Returns:
        A dictionary with 'analysis' and 'files' sections (missing sections
        are returned empty).
    """
    path = default_config_path() if config_path is None else Path(config_path)

    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found at: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")

    for section in REQUIRED_SECTIONS:
        config.setdefault(section, {})
    return config
