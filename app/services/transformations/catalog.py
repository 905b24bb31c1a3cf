"""
Transformation catalog: types, default configs, aspect ratios and the
config helpers used when a transformation is applied.

Configs are opaque to the backend. They are merged and compared here, then
forwarded verbatim to the storage provider's URL builder by the client.
"""
from copy import deepcopy
from enum import Enum
from typing import Any


class TransformationType(str, Enum):
    RESTORE = "restore"
    FILL = "fill"
    REMOVE = "remove"
    RECOLOR = "recolor"
    REMOVE_BACKGROUND = "removeBackground"
    REPLACE_BACKGROUND = "replaceBackground"


DEFAULT_CONFIGS: dict[TransformationType, dict[str, Any]] = {
    TransformationType.RESTORE: {"restore": True},
    TransformationType.FILL: {"fillBackground": True},
    TransformationType.REMOVE: {"remove": {"prompt": "", "removeShadow": True, "multiple": True}},
    TransformationType.RECOLOR: {"recolor": {"prompt": "", "to": "", "multiple": True}},
    TransformationType.REMOVE_BACKGROUND: {"removeBackground": True},
    TransformationType.REPLACE_BACKGROUND: {"replaceBackground": {"prompt": ""}},
}

ASPECT_RATIO_OPTIONS: dict[str, dict[str, Any]] = {
    "1:1": {"aspect_ratio": "1:1", "label": "Square (1:1)", "width": 1000, "height": 1000},
    "3:4": {"aspect_ratio": "3:4", "label": "Standard Portrait (3:4)", "width": 1000, "height": 1334},
    "9:16": {"aspect_ratio": "9:16", "label": "Phone Portrait (9:16)", "width": 1000, "height": 1778},
}

DEFAULT_IMAGE_DIMENSION = 1000


def default_config(transformation_type: TransformationType) -> dict[str, Any]:
    return deepcopy(DEFAULT_CONFIGS[transformation_type])


def deep_merge(primary: dict[str, Any] | None, fallback: dict[str, Any] | None) -> dict[str, Any]:
    """Merge two configs; values from ``primary`` win, nested dicts are merged key by key."""
    if fallback is None:
        return deepcopy(primary or {})
    output = deepcopy(fallback)
    for key, value in (primary or {}).items():
        if isinstance(value, dict) and isinstance(output.get(key), dict):
            output[key] = deep_merge(value, output[key])
        else:
            output[key] = deepcopy(value)
    return output


def deep_equal(a: Any, b: Any) -> bool:
    if a is b:
        return True
    if isinstance(a, dict) and isinstance(b, dict):
        if a.keys() != b.keys():
            return False
        return all(deep_equal(a[k], b[k]) for k in a)
    if isinstance(a, dict) or isinstance(b, dict):
        return False
    return a == b


def get_image_size(
    transformation_type: TransformationType | str,
    width: int | None,
    height: int | None,
    aspect_ratio: str | None,
    dimension: str,
) -> int:
    """Display size of a transformed image; ``fill`` takes its size from the aspect ratio."""
    if dimension not in ("width", "height"):
        raise ValueError(f"unknown dimension: {dimension}")
    if transformation_type == TransformationType.FILL:
        option = ASPECT_RATIO_OPTIONS.get(aspect_ratio or "")
        return option[dimension] if option else DEFAULT_IMAGE_DIMENSION
    value = width if dimension == "width" else height
    return value or DEFAULT_IMAGE_DIMENSION
