"""
Configuration for orientplan: validated Settings and raw-config loading.
"""

from orientplan.config.settings import (
    Settings,
    Setting,
    load_settings,
    settings_table,
    recognized_keys,
)
from orientplan.config.loader import (
    load_config_file,
    collect_raw_config,
)

__all__ = [
    "Settings",
    "Setting",
    "load_settings",
    "settings_table",
    "recognized_keys",
    "load_config_file",
    "collect_raw_config",
]
