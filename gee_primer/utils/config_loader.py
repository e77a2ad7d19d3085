"""
Configuration Loader Utility

Loads lesson and Earth Engine configuration from YAML files.
"""

from pathlib import Path
from typing import Dict, Any, Optional
import os

import yaml
from dotenv import load_dotenv


ENV_PREFIX = "GP_"

PROJECT_ROOT = Path(__file__).parent.parent.parent


def _load_config_from_env(prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """
    Load configuration from environment variables.

    Environment variables should be prefixed with 'GP_' (GEE Primer).
    Nested values use double underscore: GP_GEE__PROJECT_NAME

    Returns
    -------
    Dict[str, Any]
        Configuration dictionary from environment variables, empty if none found
    """
    config = {}

    for key, value in os.environ.items():
        if key.startswith(prefix):
            config_key = key[len(prefix):].lower()
            keys = config_key.split("__")

            current = config
            for k in keys[:-1]:
                if k not in current or not isinstance(current[k], dict):
                    current[k] = {}
                current = current[k]
            current[keys[-1]] = value

    return config


def _get_default_config() -> Dict[str, Any]:
    """
    Get default configuration for running the lessons.
    Only gee.project_name has to be supplied by the user.

    Returns
    -------
    Dict[str, Any]
        Default configuration dictionary
    """
    return {
        "gee": {
            "project_name": None,
            "service_account": None,
            "key_file": None,
            "export_folder": "gee_primer_exports",
            "default_scale": 30,
            "crs": "EPSG:4326",
            "max_pixels": 1e13,
            "file_format": "GeoTIFF",
        },
        "region": {
            "name": "san_francisco_bay",
            "bbox": [-122.6, 37.6, -122.3, 37.9],
        },
        "lessons": {
            "sensor": "sentinel2",
            "start_date": "2023-01-01",
            "end_date": "2024-01-01",
            "months": [6, 8],
            "max_cloud": 20,
            "list_limit": 5,
            "reducer": "median",
            "indices": ["NDVI", "NDWI", "EVI"],
        },
        "output": {
            "maps": "output/maps",
            "downloads": "output/downloads",
        },
        "logging": {
            "level": "INFO",
            "file": "logs/gee_primer.log",
            "console": True,
        },
    }


def _merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Parameters
    ----------
    base : Dict[str, Any]
        Base configuration
    override : Dict[str, Any]
        Override configuration (takes precedence)

    Returns
    -------
    Dict[str, Any]
        Merged configuration
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(config_path: Optional[str] = None, project_root: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration with fallback system:
    1. Load .env file if available (using python-dotenv)
    2. Try config.yaml (local file with the GEE project name)
    3. If not found, try config.template.yaml next to it
    4. Fill anything still missing from the built-in defaults

    Environment variables override config values:
    - Use prefix GP_ (e.g., GP_GEE__PROJECT_NAME for gee.project_name)
    - Use double underscore __ for nested keys
    - Or use .env file with same naming convention

    Parameters
    ----------
    config_path : str, optional
        Path to config file. Defaults to configs/config.yaml relative to project root.
        If a relative path is provided, it will be resolved relative to the project root.
    project_root : Path, optional
        Root used to resolve relative paths and to find .env (default: repository root)

    Returns
    -------
    Dict[str, Any]
        Configuration dictionary
    """
    project_root = Path(project_root) if project_root is not None else PROJECT_ROOT

    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    if config_path is None:
        config_path = project_root / "configs" / "config.yaml"
    else:
        config_path = Path(config_path)
        if not config_path.is_absolute():
            config_path = project_root / config_path

    config = _get_default_config()

    if config_path.exists():
        config = _merge_configs(config, _read_yaml(config_path))
    else:
        template_path = config_path.parent / "config.template.yaml"
        if template_path.exists():
            config = _merge_configs(config, _read_yaml(template_path))

    env_config = _load_config_from_env()
    if env_config:
        config = _merge_configs(config, env_config)

    return config


def get_setting(config: Dict[str, Any], dotted_key: str, default: Any = None) -> Any:
    """
    Look up a nested value with a dotted key, e.g. ``"gee.default_scale"``.
    """
    current: Any = config
    for part in dotted_key.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current
