"""MLS schema registry with lazy loading.

Usage:
    from rentcomps.mls import get_schema

    schema = get_schema("paragon")
    select = schema.select_fields()
"""

import importlib

from rentcomps.mls.base import MlsSchema

__all__ = ["MlsSchema", "available_schemas", "get_schema"]

# Lazy registry: maps schema name → (module_path, attribute)
_REGISTRY: dict[str, tuple[str, str]] = {
    "reso": ("rentcomps.mls.reso", "RESO_SCHEMA"),
    "paragon": ("rentcomps.mls.paragon", "PARAGON_SCHEMA"),
}


def get_schema(name: str) -> MlsSchema:
    """Return the schema registered under ``name``.

    Raises:
        ValueError: If the name is unknown.
    """
    key = name.strip().lower()
    if key not in _REGISTRY:
        valid = ", ".join(sorted(_REGISTRY))
        msg = f"Unknown MLS system '{name}'. Available: {valid}"
        raise ValueError(msg)

    module_path, attr = _REGISTRY[key]
    module = importlib.import_module(module_path)
    schema: MlsSchema = getattr(module, attr)
    return schema


def available_schemas() -> list[str]:
    """Return sorted list of registered schema names."""
    return sorted(_REGISTRY)
