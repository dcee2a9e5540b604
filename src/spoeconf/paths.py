from __future__ import annotations

import os
from pathlib import Path

from platformdirs import user_config_dir as _uc, user_data_dir as _ud

# ---------------------------------------------------------------------------
# User directories
# ---------------------------------------------------------------------------

def _app_name(default: str) -> str:
    return os.getenv("SPOECONF_APP_NAME", default)

def user_config_dir(app_name: str = "spoeconf") -> Path:
    app = _app_name(app_name)
    return Path(_uc(appname=app)).resolve()

def user_data_dir(app_name: str = "spoeconf") -> Path:
    app = _app_name(app_name)
    return Path(_ud(appname=app)).resolve()

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

def default_transaction_dir() -> Path:
    return user_data_dir() / "transactions"

def default_settings_file() -> Path:
    return user_config_dir() / "settings.ini"
