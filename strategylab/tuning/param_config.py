"""
Parameter search configuration parsing and validation.

A configuration lists the strategy definition fields to vary, each with an
inclusive ``start``..``end`` range and a ``step``::

    parameters:
      - name: rsi_period
        path: parameters[0].value
        start: 10
        end: 20
        step: 2
      - name: oversold
        path: conditions[1].value
        start: 20
        end: 35
        step: 5
"""

import logging
import numbers
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Union

import numpy as np
import yaml

from strategylab.tuning.exceptions import ParamConfigError, ParameterRangeError

logger = logging.getLogger(__name__)

_REQUIRED_FIELDS = ("name", "path", "start", "end", "step")


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


@dataclass
class ParameterSpec:
    """
    Specification for a single parameter to tune.

    When ``start``, ``end`` and ``step`` are all integers the generated
    values are integers too (periods stay whole numbers).
    """

    name: str
    path: str
    start: float
    end: float
    step: float

    def __post_init__(self) -> None:
        for attr in ("start", "end", "step"):
            value = getattr(self, attr)
            if not _is_number(value) or not np.isfinite(value):
                raise ParameterRangeError(self.name, f"{attr} must be a finite number, got {value!r}")
        if self.step <= 0:
            raise ParameterRangeError(self.name, "step must be positive")
        if self.start > self.end:
            raise ParameterRangeError(
                self.name, f"start ({self.start}) must be <= end ({self.end})"
            )

    @property
    def is_integer(self) -> bool:
        return all(isinstance(v, numbers.Integral) for v in (self.start, self.end, self.step))

    def get_values(self) -> List[Union[int, float]]:
        """
        Values from start to end (inclusive) in increments of step.

        Float values are rounded to one digit beyond the step's precision so
        that e.g. 0.1 + 0.2 prints as 0.3.
        """
        if self.is_integer:
            return list(range(int(self.start), int(self.end) + 1, int(self.step)))

        values = np.arange(self.start, self.end + self.step / 2, self.step)
        decimals = max(0, -int(np.floor(np.log10(abs(self.step)))) + 1)
        return np.round(values, decimals).tolist()

    def __repr__(self) -> str:
        return f"ParameterSpec({self.name}: {self.start} to {self.end} step {self.step})"


@dataclass
class ParamConfig:
    """Complete parameter configuration for a grid search."""

    parameters: List[ParameterSpec] = field(default_factory=list)

    def __post_init__(self) -> None:
        seen = set()
        for spec in self.parameters:
            if spec.name in seen:
                raise ParamConfigError(spec.name, "duplicate parameter name")
            seen.add(spec.name)

    def get_search_space_size(self) -> int:
        """Total number of combinations in the grid."""
        size = 1
        for param in self.parameters:
            size *= len(param.get_values())
        return size

    def search_space(self) -> Dict[str, List[Union[int, float]]]:
        return {spec.name: spec.get_values() for spec in self.parameters}

    def __repr__(self) -> str:
        return f"ParamConfig({len(self.parameters)} params, {self.get_search_space_size()} combinations)"


def validate_param_dict(param_dict: Any, index: int) -> ParameterSpec:
    """
    Validate and create a ParameterSpec from a dictionary.

    Args:
        param_dict: Mapping with name, path, start, end and step.
        index: Position in the parameter list (for error messages).

    Raises:
        ParamConfigError: If a field is missing or has the wrong type.
        ParameterRangeError: If the range is invalid.
    """
    where = f"param[{index}]"
    if not isinstance(param_dict, Mapping):
        raise ParamConfigError(where, "each parameter must be a mapping")

    missing = [f for f in _REQUIRED_FIELDS if f not in param_dict]
    if missing:
        raise ParamConfigError(where, f"missing required fields: {', '.join(missing)}")

    name = param_dict["name"]
    path = param_dict["path"]
    if not isinstance(name, str) or not name:
        raise ParamConfigError(where, "name must be a non-empty string")
    if not isinstance(path, str) or not path:
        raise ParamConfigError(where, "path must be a non-empty string")

    for field_name in ("start", "end", "step"):
        value = param_dict[field_name]
        if not _is_number(value):
            raise ParamConfigError(
                where, f"{field_name} must be a number, got {type(value).__name__}"
            )

    return ParameterSpec(
        name=name,
        path=path,
        start=param_dict["start"],
        end=param_dict["end"],
        step=param_dict["step"],
    )


def param_config_from_dict(content: Any, source: str = "<dict>") -> ParamConfig:
    """
    Build a ParamConfig from parsed YAML content.

    Accepts either a ``parameters`` or a ``params`` key holding a list.

    Raises:
        ParamConfigError: If the structure is invalid.
    """
    if not isinstance(content, Mapping):
        raise ParamConfigError(source, "top level must be a mapping")

    if "parameters" in content:
        params_list = content["parameters"]
    elif "params" in content:
        params_list = content["params"]
    else:
        raise ParamConfigError(source, "missing 'parameters' key")

    if params_list is None:
        params_list = []
    if not isinstance(params_list, list):
        raise ParamConfigError(source, "'parameters' must be a list")

    return ParamConfig(parameters=[validate_param_dict(p, i) for i, p in enumerate(params_list)])


def load_param_config(file_path: str) -> ParamConfig:
    """
    Load parameter configuration from a YAML file.

    Raises:
        ParamConfigError: If the file is missing, empty or invalid.
    """
    path = Path(file_path)
    if not path.exists():
        raise ParamConfigError(file_path, "file not found")

    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ParamConfigError(file_path, f"YAML parsing error: {e}")

    if not content:
        raise ParamConfigError(file_path, "file is empty")

    config = param_config_from_dict(content, file_path)
    logger.debug("Loaded %r from %s", config, file_path)
    return config
