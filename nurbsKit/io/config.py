"""
Configuration loading.

Kernel settings can be kept in a JSON file with two optional sections:

    {
      "analysis": {
        "gauss_degree_increase": 16,
        "max_iterations": 5
      },
      "tessellation": {
        "NormTol": 0.025,
        "MinDepth": 0,
        "MaxDepth": 10,
        "Refine": true,
        "MinDivsU": 1,
        "MinDivsV": 1
      }
    }

Option names are accepted in snake_case or CamelCase. Unknown sections or
keys raise ValidationError, as do values the option classes reject.
"""

import json
import logging
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Union

from ..errors import ValidationError
from ..analysis.options import AnalysisOptions
from ..tessellation.adaptive import AdaptiveRefinementOptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KernelConfig:
    """Settings for analysis and tessellation."""
    analysis: AnalysisOptions = field(default_factory=AnalysisOptions)
    tessellation: AdaptiveRefinementOptions = field(default_factory=AdaptiveRefinementOptions)


def _snake_case(name: str) -> str:
    # NormTol -> norm_tol, MinDivsU -> min_divs_u
    return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()


def _build_options(cls, section: str, values: Dict[str, Any]):
    if not isinstance(values, dict):
        raise ValidationError(f"Section '{section}' must be a mapping")

    known = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in values.items():
        name = _snake_case(key)
        if name not in known:
            raise ValidationError(
                f"Unknown option '{key}' in section '{section}'. "
                f"Valid options: {sorted(known)}"
            )
        if name in kwargs:
            raise ValidationError(f"Option '{key}' given twice in section '{section}'")
        kwargs[name] = value

    try:
        return cls(**kwargs)
    except TypeError as e:
        raise ValidationError(f"Invalid value in section '{section}': {e}") from e


def config_from_dict(data: Dict[str, Any]) -> KernelConfig:
    """
    Build a KernelConfig from a parsed mapping.

    Parameters:
        data: Mapping with optional 'analysis' and 'tessellation' sections

    Returns:
        KernelConfig; missing sections take their defaults
    """
    if not isinstance(data, dict):
        raise ValidationError("Configuration must be a mapping")

    unknown = set(data) - {'analysis', 'tessellation'}
    if unknown:
        raise ValidationError(f"Unknown configuration sections: {sorted(unknown)}")

    analysis = _build_options(AnalysisOptions, 'analysis', data.get('analysis', {}))
    tessellation = _build_options(AdaptiveRefinementOptions, 'tessellation',
                                  data.get('tessellation', {}))
    return KernelConfig(analysis=analysis, tessellation=tessellation)


def load_config(filename: Union[str, Path]) -> KernelConfig:
    """
    Load kernel configuration from a JSON file.

    Parameters:
        filename: Path to the JSON file

    Returns:
        KernelConfig

    Raises:
        ValidationError: if the file is not valid JSON or holds invalid options
    """
    path = Path(filename)
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in {path}: {e}") from e

    config = config_from_dict(data)
    logger.debug("Loaded configuration from %s: %s", path, config)
    return config
