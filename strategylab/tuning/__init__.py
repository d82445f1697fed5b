"""
Parameter Tuning Module.

Grid search over the numeric fields of a strategy definition.

Usage (Python API):
    from strategylab.tuning import run_parameter_search

    result = run_parameter_search(
        bars,
        strategy_template="strategy.yaml",
        param_config="params.yaml",
        metric="sharpe_ratio",
    )

Usage (CLI):
    python -m strategylab.tuning --data SPY.csv --strategy strategy.yaml --params params.yaml
"""

from strategylab.tuning.exceptions import (
    InvalidPathError,
    ParamConfigError,
    ParameterRangeError,
    SearchFailedError,
    TemplateError,
    TuningError,
)
from strategylab.tuning.optimizer import (
    ParameterResult,
    SearchResult,
    generate_parameter_combinations,
    run_parameter_search,
)
from strategylab.tuning.param_config import ParamConfig, ParameterSpec, load_param_config

__all__ = [
    "InvalidPathError",
    "ParamConfig",
    "ParamConfigError",
    "ParameterRangeError",
    "ParameterResult",
    "ParameterSpec",
    "SearchFailedError",
    "SearchResult",
    "TemplateError",
    "TuningError",
    "generate_parameter_combinations",
    "load_param_config",
    "run_parameter_search",
]
