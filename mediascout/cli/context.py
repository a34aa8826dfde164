"""
CLI Context - Global application state shared by commands.

Holds the configuration manager created by the main callback so command
modules can reach it without circular imports.
"""

from typing import Optional

from mediascout.core import ConfigManager


# Global application state
_config_manager: Optional[ConfigManager] = None
_debug: bool = False


def get_config_manager() -> ConfigManager:
    """Get the global configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config_manager(config_manager: ConfigManager) -> None:
    """Set the global configuration manager instance."""
    global _config_manager
    _config_manager = config_manager


def is_debug() -> bool:
    return _debug


def set_debug(debug: bool) -> None:
    global _debug
    _debug = debug


# Export context functions
__all__ = [
    "get_config_manager",
    "set_config_manager",
    "is_debug",
    "set_debug",
]
