"""
Core utilities
"""

import importlib
from typing import Any

from .exceptions import TransportFactoryError


def import_from_path(import_path: str) -> Any:
    """
    Resolve ``"package.module:attribute"`` (dots allowed after the colon).

    Raises:
        TransportFactoryError: If the path is malformed or cannot be imported
    """
    module_name, sep, attribute = (import_path or "").partition(":")
    if not sep or not module_name or not attribute:
        raise TransportFactoryError(import_path, "expected 'module:attribute'")

    try:
        target = importlib.import_module(module_name)
    except ImportError as e:
        raise TransportFactoryError(import_path, str(e)) from e

    for part in attribute.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as e:
            raise TransportFactoryError(import_path, f"no attribute '{part}'") from e
    return target
