"""
Common utilities shared across the operator
"""

# Standard
from typing import Any, Dict, Optional

# Local
from . import constants

# Sentinel for missing dict values
_MISSING = object()

## Dicts #######################################################################


def merge_configs(base: dict, overrides: dict) -> dict:
    """Deep merge overrides into base in place and return base. Nested dicts
    are merged key by key, any other value replaces the base value.
    """
    for key, value in overrides.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            merge_configs(base[key], value)
        else:
            base[key] = value
    return base


def nested_get(dct: dict, key: str, dflt=None) -> Any:
    """Get a value from a dict using 'foo.bar' key notation

    Args:
        dct:  dict
            The dict to search
        key:  str
            Key that may contain '.' notation indicating dict nesting
        dflt:  Any
            Value returned when any part of the key is missing

    Returns:
        val:  Any
            The value at the nested key or dflt
    """
    current = dct
    for part in key.split(constants.NESTED_DICT_DELIM):
        if not isinstance(current, dict):
            return dflt
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return dflt
    return current


## Labels ######################################################################


def make_watch_label_value(namespace: str, name: str) -> str:
    """Encode an IstioCSR key into the dependency-watch label value"""
    return f"{namespace}{constants.WATCH_LABEL_VALUE_DELIM}{name}"


def parse_watch_label_value(value: Optional[str]) -> Optional[Dict[str, str]]:
    """Decode a dependency-watch label value. Returns None when the value does
    not hold exactly a namespace and a name.
    """
    if not value:
        return None
    parts = value.split(constants.WATCH_LABEL_VALUE_DELIM)
    if len(parts) != 2 or not all(parts):
        return None
    return {"namespace": parts[0], "name": parts[1]}
