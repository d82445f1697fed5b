"""
Addressing fields of a strategy definition by path.

Paths are dot-separated keys with optional list indexes, e.g.
``parameters[0].value`` or ``conditions[1].value``.
"""

import copy
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

import yaml

from strategylab.tuning.exceptions import InvalidPathError, TemplateError

# name or name[index]
SEGMENT_PATTERN = re.compile(r"^([a-zA-Z_][a-zA-Z0-9_]*)(?:\[(\d+)\])?$")


def parse_path_segment(segment: str) -> Tuple[str, Optional[int]]:
    """
    Parse a single path segment.

    Returns:
        Tuple of (key, index) where index is None for plain key access.

    Raises:
        InvalidPathError: If the segment is malformed.
    """
    match = SEGMENT_PATTERN.match(segment)
    if not match:
        raise InvalidPathError(segment, "invalid segment format")
    index = match.group(2)
    return match.group(1), None if index is None else int(index)


def _split(path: str) -> List[Tuple[str, Optional[int]]]:
    if not isinstance(path, str) or not path:
        raise InvalidPathError(str(path), "path must be a non-empty string")
    try:
        return [parse_path_segment(s) for s in path.split(".")]
    except InvalidPathError as e:
        raise InvalidPathError(path, f"invalid segment '{e.path}'")


def _step(current: Any, key: str, index: Optional[int], path: str) -> Any:
    if not isinstance(current, dict):
        raise InvalidPathError(path, f"expected mapping at '{key}', got {type(current).__name__}")
    if key not in current:
        raise InvalidPathError(path, f"key '{key}' not found")

    current = current[key]
    if index is None:
        return current

    if not isinstance(current, list):
        raise InvalidPathError(path, f"expected list at '{key}', got {type(current).__name__}")
    if index >= len(current):
        raise InvalidPathError(
            path, f"index {index} out of range for '{key}' (length {len(current)})"
        )
    return current[index]


def get_by_path(data: Dict[str, Any], path: str) -> Any:
    """
    Get a value from a nested dict/list structure.

    Raises:
        InvalidPathError: If the path is malformed or does not exist.
    """
    current = data
    for key, index in _split(path):
        current = _step(current, key, index, path)
    return current


def set_by_path(data: Dict[str, Any], path: str, value: Any) -> None:
    """
    Replace an existing value in a nested dict/list structure (in place).

    The final segment may name a new key on an existing mapping; every
    list index must already exist.

    Raises:
        InvalidPathError: If the path is malformed or its parent does not exist.
    """
    segments = _split(path)

    current = data
    for key, index in segments[:-1]:
        current = _step(current, key, index, path)

    key, index = segments[-1]
    if not isinstance(current, dict):
        raise InvalidPathError(path, f"expected mapping at parent of '{key}'")

    if index is None:
        current[key] = value
        return

    target = current.get(key)
    if not isinstance(target, list):
        raise InvalidPathError(path, f"expected list at '{key}'")
    if index >= len(target):
        raise InvalidPathError(path, f"index {index} out of range for '{key}' (length {len(target)})")
    target[index] = value


def clone_and_modify(base: Mapping[str, Any], modifications: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Deep-copy a definition and apply path -> value modifications.

    The base definition is never modified.
    """
    modified = copy.deepcopy(dict(base))
    for path, value in modifications.items():
        set_by_path(modified, path, value)
    return modified


def load_definition(file_path: str) -> Dict[str, Any]:
    """
    Load a strategy definition template from YAML.

    A top-level ``strategy`` key is unwrapped, matching the strategy loader.

    Raises:
        TemplateError: If the file is missing, unparseable or not a mapping.
    """
    path = Path(file_path)
    if not path.exists():
        raise TemplateError(file_path, "file not found")

    try:
        with open(path, "r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TemplateError(file_path, f"YAML parsing error: {e}")

    if isinstance(content, dict) and "strategy" in content:
        content = content["strategy"]
    if not isinstance(content, dict):
        raise TemplateError(file_path, "template must be a mapping")
    return content
