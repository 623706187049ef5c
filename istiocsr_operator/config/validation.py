"""
Validate the values of a loaded library config against a parallel validation
config
"""

# Standard
from typing import Any, Dict, List, Optional, Union
import abc

# First Party
import aconfig
import alog

# Local
from .. import constants
from ..utils import nested_get

log = alog.use_channel("CONFG")


################################################################################
## Public ######################################################################
################################################################################


def get_invalid_params(
    config: aconfig.Config,
    validation_config: aconfig.Config,
) -> List[str]:
    """Get the list of nested keys whose values fail validation

    Args:
        config:  aconfig.Config
            The parsed config with any override values
        validation_config:  aconfig.Config
            The parallel config holding the parameter rules

    Returns:
        invalid_params:  List[str]
            The nested keys of every parameter that failed validation
    """
    invalid_params = []
    for key, param in parse_validation_config(validation_config).items():
        if not param.validate(nested_get(config, key)):
            log.warning("Found invalid config key [%s]", key)
            invalid_params.append(key)
    return invalid_params


def parse_validation_config(
    validation_config: dict,
    prefix: Optional[List[str]] = None,
) -> Dict[str, "Parameter"]:
    """Walk the validation config and build a Parameter for every dict that
    declares a known "type". Dicts without one are treated as nested sections.
    """
    prefix = prefix or []
    params = {}
    for key, val in validation_config.items():
        if not isinstance(val, dict):
            continue
        key_parts = prefix + [key]
        nested_key = constants.NESTED_DICT_DELIM.join(key_parts)
        param_type = val.get("type")
        if isinstance(param_type, str) and param_type in _PARAMETER_TYPES:
            log.debug3("Found parameter at %s", nested_key)
            kwargs = {k: v for k, v in val.items() if k != "type"}
            params[nested_key] = _PARAMETER_TYPES[param_type](**kwargs)
        else:
            log.debug3("Recursing into %s", nested_key)
            params.update(parse_validation_config(val, key_parts))
    return params


################################################################################
## Parameters ##################################################################
################################################################################

# pylint: disable=too-few-public-methods


class Parameter(abc.ABC):
    """A single config value with type and value rules"""

    TYPES = ()

    def __init__(self, optional: bool = False):
        self.optional = optional

    def validate(self, value: Any) -> bool:
        if value is None and self.optional:
            return True
        # bool is an int subclass so it is only valid where explicitly listed
        if isinstance(value, bool) and bool not in self.TYPES:
            log.warning("Invalid type <%s>", type(value))
            return False
        if not isinstance(value, self.TYPES):
            log.warning("Invalid type <%s>", type(value))
            return False
        if not self._valid_value(value):
            log.warning("Invalid value [%s]", value)
            return False
        return True

    @abc.abstractmethod
    def _valid_value(self, value: Any) -> bool:
        """Check the value once its type is known to be valid"""


class NumberParameter(Parameter):
    TYPES = (int, float)

    def __init__(
        self,
        min: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        max: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.min = min
        self.max = max

    def _valid_value(self, value: Union[int, float]) -> bool:
        return (self.min is None or value >= self.min) and (
            self.max is None or value <= self.max
        )


class IntParameter(NumberParameter):
    TYPES = (int,)


class StrParameter(Parameter):
    TYPES = (str,)

    def __init__(
        self,
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.min_len = min_len
        self.max_len = max_len

    def _valid_value(self, value: str) -> bool:
        return (self.min_len is None or len(value) >= self.min_len) and (
            self.max_len is None or len(value) <= self.max_len
        )


class BoolParameter(Parameter):
    TYPES = (bool,)

    def _valid_value(self, value: bool) -> bool:
        return True


class EnumParameter(Parameter):
    """A str or int parameter limited to a fixed set of values"""

    TYPES = (str, int)

    def __init__(self, values: List[Union[str, int]], **kwargs):
        super().__init__(**kwargs)
        assert isinstance(values, list) and values, "Must provide enum values"
        self.values = values

    def _valid_value(self, value: Union[str, int]) -> bool:
        return value in self.values


_PARAMETER_TYPES = {
    "number": NumberParameter,
    "int": IntParameter,
    "str": StrParameter,
    "bool": BoolParameter,
    "enum": EnumParameter,
}
