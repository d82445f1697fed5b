"""
Strategy definition models, validation and YAML loading.

A strategy is a tagged variant:

- ``predefined`` / ``combined``: an ordered list of conditions evaluated
  first-match-wins.
- ``custom``: either ``code`` (a restricted expression) or ``function``
  (the name of a strategy registered with ``@register_strategy``).

Strategies are loaded from plain dictionaries or YAML files::

    name: "RSI reversal"
    type: predefined
    conditions:
      - {indicator: rsi, operator: less, value: 30, action: buy}
      - {indicator: rsi, operator: greater, value: 70, action: sell}
    parameters:
      - {name: period, value: 14}
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple, Union

import yaml

from strategylab.engine.constants import (
    VALID_ACTIONS,
    VALID_OPERATORS,
    IndicatorKey,
    StrategyType,
)
from strategylab.engine.exceptions import (
    FileNotFoundError,
    InvalidConditionError,
    InvalidStrategyError,
)
from strategylab.engine.expressions import ExpressionEvaluator, compile_expression

# Indicator groups a condition key needs computed
_CONDITION_INDICATORS = {
    IndicatorKey.RSI: "rsi",
    IndicatorKey.MACD: "macd",
    IndicatorKey.BOLLINGER: "bollinger",
}


@dataclass(frozen=True)
class Condition:
    """
    A single rule condition.

    Attributes:
        indicator: Indicator key (rsi, macd, bollinger, price, volume).
        operator: greater, less, equal, cross-above or cross-below.
        value: Threshold.
        action: "buy" or "sell" when the predicate holds.
    """

    indicator: str
    operator: str
    value: float
    action: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator": self.indicator,
            "operator": self.operator,
            "value": self.value,
            "action": self.action,
        }


@dataclass(frozen=True)
class StrategyParameter:
    """Named strategy parameter."""

    name: str
    value: Any


@dataclass(frozen=True)
class Strategy:
    """
    Trading strategy definition.

    Attributes:
        type: predefined, combined or custom.
        conditions: Ordered conditions (predefined/combined).
        code: Restricted expression source (custom).
        function: Registered strategy function name (custom).
        parameters: Named parameters exposed as ``params``.
        name: Display name.
    """

    type: str
    conditions: Tuple[Condition, ...] = ()
    code: Optional[str] = None
    function: Optional[str] = None
    parameters: Tuple[StrategyParameter, ...] = ()
    name: str = "strategy"
    expression: Optional[ExpressionEvaluator] = field(
        default=None, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "conditions", tuple(self.conditions))
        object.__setattr__(self, "parameters", tuple(self.parameters))
        if self.type == StrategyType.CUSTOM and self.code is not None:
            object.__setattr__(self, "expression", compile_expression(self.code))

    @property
    def is_condition_based(self) -> bool:
        return self.type in (StrategyType.PREDEFINED, StrategyType.COMBINED)

    def params(self) -> Dict[str, Any]:
        """Parameters flattened to a name -> value map."""
        return {p.name: p.value for p in self.parameters}

    def required_indicators(self) -> FrozenSet[str]:
        """
        Indicator groups this strategy reads directly.

        Registered functions declare their own requirements in the registry.
        """
        if self.is_condition_based:
            return frozenset(
                _CONDITION_INDICATORS[c.indicator]
                for c in self.conditions
                if c.indicator in _CONDITION_INDICATORS
            )
        if self.expression is not None:
            return self.expression.required_indicators()
        return frozenset()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the dictionary form accepted by strategy_from_dict."""
        data: Dict[str, Any] = {"name": self.name, "type": self.type}
        if self.conditions:
            data["conditions"] = [c.to_dict() for c in self.conditions]
        if self.code is not None:
            data["code"] = self.code
        if self.function is not None:
            data["function"] = self.function
        if self.parameters:
            data["parameters"] = [{"name": p.name, "value": p.value} for p in self.parameters]
        return data


def _normalize_operator(operator: Any) -> Any:
    if isinstance(operator, str):
        return operator.strip().lower().replace("_", "-")
    return operator


def validate_condition(condition_dict: Mapping[str, Any], strategy_name: str = "") -> Condition:
    """
    Validate and create a Condition from a dictionary.

    Unknown indicator keys are accepted; they evaluate to 0.

    Raises:
        InvalidConditionError: If a field is missing or invalid.
    """
    where = f"in strategy '{strategy_name}'" if strategy_name else repr(condition_dict)

    if not isinstance(condition_dict, Mapping):
        raise InvalidConditionError(where, "condition must be a mapping")

    required_fields = {"indicator", "operator", "value", "action"}
    missing = required_fields - set(condition_dict.keys())
    if missing:
        raise InvalidConditionError(
            where, f"missing required fields: {', '.join(sorted(missing))}"
        )

    indicator = condition_dict["indicator"]
    operator = _normalize_operator(condition_dict["operator"])
    action = condition_dict["action"]
    value = condition_dict["value"]

    if not isinstance(indicator, str) or not indicator.strip():
        raise InvalidConditionError(where, "indicator must be a non-empty string")

    if operator not in VALID_OPERATORS:
        raise InvalidConditionError(
            where,
            f"invalid operator '{condition_dict['operator']}', "
            f"must be one of: {', '.join(sorted(VALID_OPERATORS))}",
        )

    if not isinstance(action, str) or action.lower() not in VALID_ACTIONS:
        raise InvalidConditionError(
            where,
            f"invalid action '{action}', must be one of: {', '.join(sorted(VALID_ACTIONS))}",
        )

    if isinstance(value, bool):
        raise InvalidConditionError(where, f"value must be a number, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidConditionError(where, f"value must be a number, got {value!r}")

    return Condition(
        indicator=indicator.strip().lower(),
        operator=operator,
        value=value,
        action=action.lower(),
    )


def _parse_parameters(raw: Any, source: str) -> List[StrategyParameter]:
    if raw is None:
        return []
    if isinstance(raw, Mapping):
        return [StrategyParameter(str(k), v) for k, v in raw.items()]
    if not isinstance(raw, list):
        raise InvalidStrategyError(source, "'parameters' must be a list or mapping")

    parameters = []
    for item in raw:
        if not isinstance(item, Mapping) or "name" not in item or "value" not in item:
            raise InvalidStrategyError(source, "each parameter needs 'name' and 'value'")
        parameters.append(StrategyParameter(str(item["name"]), item["value"]))
    return parameters


def strategy_from_dict(data: Mapping[str, Any], source: str = "<dict>") -> Strategy:
    """
    Validate and create a Strategy from a dictionary.

    The ``type`` defaults to ``custom`` when ``code`` or ``function`` is
    given and to ``predefined`` otherwise. Unrecognised types are kept; the
    sandbox treats them as hold.

    Raises:
        InvalidStrategyError: If the definition is malformed.
        InvalidConditionError: If a condition is malformed.
    """
    if not isinstance(data, Mapping):
        raise InvalidStrategyError(source, "strategy must be a mapping")

    name = data.get("name") or data.get("function") or "strategy"
    if not isinstance(name, str):
        raise InvalidStrategyError(source, "strategy name must be a string")

    code = data.get("code")
    function = data.get("function")
    default_type = StrategyType.CUSTOM if (code or function) else StrategyType.PREDEFINED
    strategy_type = str(data.get("type") or default_type).lower()

    conditions_raw = data.get("conditions") or []
    if not isinstance(conditions_raw, list):
        raise InvalidStrategyError(source, "'conditions' must be a list")
    conditions = [validate_condition(c, name) for c in conditions_raw]

    if code is not None and not isinstance(code, str):
        raise InvalidStrategyError(source, "'code' must be a string expression")
    if function is not None and not isinstance(function, str):
        raise InvalidStrategyError(source, "'function' must be a registered strategy name")
    if code is not None and function is not None:
        raise InvalidStrategyError(source, "cannot specify both 'code' and 'function'")

    return Strategy(
        type=strategy_type,
        conditions=tuple(conditions),
        code=code,
        function=function,
        parameters=tuple(_parse_parameters(data.get("parameters"), source)),
        name=name,
    )


def builtin_strategy(
    name: str, parameters: Optional[Mapping[str, Any]] = None
) -> Strategy:
    """Strategy that dispatches to the registered function ``name``."""
    return Strategy(
        type=StrategyType.CUSTOM,
        function=name,
        parameters=tuple(StrategyParameter(k, v) for k, v in (parameters or {}).items()),
        name=name,
    )


def load_strategy_file(file_path: str) -> Strategy:
    """
    Load a strategy from a YAML file.

    The file holds either the strategy mapping itself or a mapping with a
    single ``strategy`` key.

    Raises:
        FileNotFoundError: If file does not exist.
        InvalidStrategyError: If YAML is invalid or the structure is wrong.
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(file_path)

    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidStrategyError(file_path, f"YAML parsing error: {e}")

    if not content:
        raise InvalidStrategyError(file_path, "file is empty")

    if not isinstance(content, dict):
        raise InvalidStrategyError(file_path, "top level must be a mapping")

    if "strategy" in content:
        content = content["strategy"]

    return strategy_from_dict(content, file_path)


def coerce_strategy(value: Union[str, Strategy, Mapping[str, Any]]) -> Strategy:
    """Accept a Strategy, a definition dict, a YAML path or a registered name."""
    if isinstance(value, Strategy):
        return value
    if isinstance(value, Mapping):
        return strategy_from_dict(value)
    if isinstance(value, str) and value.lower().endswith((".yaml", ".yml")):
        return load_strategy_file(value)
    if isinstance(value, str):
        return builtin_strategy(value)
    raise InvalidStrategyError(repr(value), "expected a Strategy, mapping, YAML path or name")
