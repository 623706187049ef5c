"""
Library config for the operator. Values are loaded once from config.yaml with
environment overrides and are accessed as attributes of this module.
"""

# Local
from .config import library_config


def __getattr__(name):
    if name in library_config or hasattr({}, name):
        return getattr(library_config, name)
    raise AttributeError(f"No such config attribute {name}")


__all__ = list(library_config.keys())
