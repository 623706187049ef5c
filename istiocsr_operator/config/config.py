"""
Load the library config at import time and perform the initial log setup
"""

# Standard
import os

# First Party
import aconfig
import alog

# Local
from ..exceptions import assert_config
from ..log_format import IstioCSRJsonFormatter
from .validation import get_invalid_params

_CONFIG_DIR = os.path.dirname(__file__)

library_config = aconfig.Config.from_yaml(
    os.path.join(_CONFIG_DIR, "config.yaml"),
    override_env_vars=True,
)

# The validation rules themselves must not be overridable
validation_config = aconfig.Config.from_yaml(
    os.path.join(_CONFIG_DIR, "config_validation.yaml"),
    override_env_vars=False,
)

invalid_params = get_invalid_params(library_config, validation_config)
assert_config(
    not invalid_params,
    f"Library configuration found invalid values: {invalid_params}",
)

alog.configure(
    default_level=library_config.log_level,
    filters=library_config.log_filters,
    formatter=IstioCSRJsonFormatter() if library_config.log_json else "pretty",
    thread_id=library_config.log_thread_id,
)
