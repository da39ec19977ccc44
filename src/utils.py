"""
Shared utility functions.

Contains default path helpers used when no keystore directory is given.
The data directory can be moved with the ETHSTORE_HOME environment variable.
"""

import os
import sys
from pathlib import Path


APP_DIR_NAME = ".ethstore"
HOME_ENV_VAR = "ETHSTORE_HOME"


def get_app_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        app_dir = Path(override).expanduser()
    elif getattr(sys, 'frozen', False):
        # Running as compiled
        app_dir = Path(sys.executable).parent / "data"
    else:
        app_dir = Path.home() / APP_DIR_NAME

    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def get_keystore_dir() -> Path:
    """Get the default keystore directory."""
    return get_app_dir() / "keystore"


def get_logs_dir() -> Path:
    """Get the logs directory."""
    logs_dir = get_app_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    return logs_dir
