"""CLI command modules for alexa-velux."""

from .config import register_config_commands
from .store import register_store_commands

__all__ = [
    "register_config_commands",
    "register_store_commands",
]
