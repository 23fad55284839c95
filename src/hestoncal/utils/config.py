import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Union

logger = logging.getLogger(__name__)


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML settings file such as ``configs/calibration.yaml``.

    Args:
        path: YAML file path

    Returns:
        Top-level mapping of the file; an empty file gives ``{}``

    Raises:
        FileNotFoundError: If the file does not exist
        yaml.YAMLError: If the file is not valid YAML
        ValueError: If the top level is not a mapping
    """
    path = Path(path)
    if not path.is_file():
        logger.error(f"Config file not found: {path}")
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with path.open("r") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in {path}: {e}")
        raise

    if content is None:
        content = {}
    if not isinstance(content, dict):
        raise ValueError(f"{path} must contain a mapping at the top level, got {type(content).__name__}")

    logger.info(f"Loaded settings from {path} (sections: {sorted(content)})")
    return content


def merge_configs(base_config: Mapping[str, Any], override_config: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Overlay ``override_config`` on ``base_config``.

    Nested sections such as ``quadrature`` are merged key by key, any other
    value is replaced. Neither input is modified.
    """
    merged = dict(base_config)
    for key, override in override_config.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(override, Mapping):
            merged[key] = merge_configs(current, override)
        else:
            merged[key] = override
    return merged


def get_nested_value(config: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """
    Look up a dotted key, e.g. ``'calibration.quadrature.n_panels'``.

    Returns ``default`` as soon as a path element is missing or the value
    reached so far is not a mapping.
    """
    value: Any = config
    for part in key.split('.'):
        if not isinstance(value, Mapping) or part not in value:
            return default
        value = value[part]
    return value
