import sys
from datetime import UTC, datetime
from typing import Any, TypeGuard, cast

import structlog


def is_dict(obj: Any) -> TypeGuard[dict[str, Any]]:
    return isinstance(obj, dict)


def get_now() -> datetime:
    return datetime.now(UTC)


def get_now_ms() -> int:
    return int(get_now().timestamp() * 1000)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    if name is None:
        # Get the name of the module that called this function
        frame = sys._getframe(1)  # type: ignore  # 0 would be get_logger, 1 is the caller
        module_name = frame.f_globals["__name__"].rsplit(".", 1)[-1]
        name = module_name
    return structlog.stdlib.get_logger(name)


def deep_merge(base: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Args:
        base: Base dictionary that will be updated
        update: Dictionary with values to update

    Returns:
        Updated dictionary with deeply merged values
    """
    merged = base.copy()

    for key, value in update.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], cast(dict[str, Any], value))
        else:
            merged[key] = value

    return merged
