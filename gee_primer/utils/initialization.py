"""
Shared Initialization Module

Loads configuration, prepares output folders and connects to Google Earth Engine.
Used by the lesson runner and the helper scripts.
"""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

import ee

from gee_primer.utils.config_loader import PROJECT_ROOT, load_config

logger = logging.getLogger(__name__)


def initialize_project(config_path: Optional[str] = None) -> Tuple[Dict, Path, Path]:
    """
    Initialize project structure and load configuration.

    Parameters
    ----------
    config_path : str, optional
        Path to configuration file (default: configs/config.yaml).
        Can be absolute or relative to project root.

    Returns
    -------
    Tuple[Dict, Path, Path]
        Tuple containing:
        - config: Loaded configuration dictionary
        - project_root: Path to project root directory
        - maps_dir: Path to the directory where lesson maps are written
    """
    project_root = PROJECT_ROOT
    config = load_config(config_path)

    maps_dir = Path(config.get("output", {}).get("maps", "output/maps"))
    if not maps_dir.is_absolute():
        maps_dir = project_root / maps_dir
    maps_dir.mkdir(parents=True, exist_ok=True)

    return config, project_root, maps_dir


def _service_account_credentials(gee_config: Dict):
    service_account = gee_config.get("service_account")
    key_file = gee_config.get("key_file")
    if not service_account or not key_file:
        return None
    if not Path(key_file).exists():
        raise FileNotFoundError(f"Service account key file not found: {key_file}")
    return ee.ServiceAccountCredentials(service_account, key_file)


def initialize_earth_engine(config: Dict, project_name: Optional[str] = None) -> str:
    """
    Initialize Google Earth Engine.

    Uses service account credentials when gee.service_account and gee.key_file
    are both configured, otherwise the user's stored credentials. If those are
    missing, ee.Authenticate() is run once before retrying.

    Parameters
    ----------
    config : dict
        Loaded configuration
    project_name : str, optional
        Cloud project registered for Earth Engine. Overrides gee.project_name.

    Returns
    -------
    str
        The project Earth Engine was initialized with
    """
    gee_config = config.get("gee", {}) or {}
    project_name = project_name or gee_config.get("project_name")
    if not project_name:
        raise ValueError(
            "GEE project name not set. "
            "Either pass --project or set gee.project_name in config.yaml (or GP_GEE__PROJECT_NAME)"
        )

    credentials = _service_account_credentials(gee_config)
    if credentials is not None:
        try:
            ee.Initialize(credentials, project=project_name)
        except Exception as e:
            raise RuntimeError(
                f"Failed to initialize Earth Engine with service account for project {project_name}: {e}"
            ) from e
        logger.info("Earth Engine initialized with service account for project: %s", project_name)
        return project_name

    try:
        ee.Initialize(project=project_name)
    except Exception as e:
        logger.warning("Earth Engine initialization failed (%s); starting authentication", e)
        print("Authenticating with Google Earth Engine...")
        print("This will open a browser window for authentication.")
        try:
            ee.Authenticate()
            ee.Initialize(project=project_name)
        except Exception as auth_error:
            raise RuntimeError(
                f"Failed to initialize Earth Engine for project {project_name}: {auth_error}"
            ) from auth_error

    logger.info("Earth Engine initialized with project: %s", project_name)
    return project_name
