"""Tool settings."""
from .settings import ToolSettings, load_settings, validate_server, find_config_file

__all__ = ["ToolSettings", "load_settings", "validate_server", "find_config_file"]
