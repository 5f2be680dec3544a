from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any, Dict, cast

import jsonschema  # type: ignore[import-untyped]


@lru_cache(maxsize=None)
def load_schema(name: str) -> Dict[str, Any]:
    with resources.files("credential_bridge").joinpath(f"schemas/{name}.json").open(
        "r", encoding="utf-8"
    ) as f:
        return cast(Dict[str, Any], json.load(f))


def validate(instance: Any, name: str) -> None:
    """Validate instance against a bundled schema.

    Raises:
        jsonschema.ValidationError: If instance doesn't match the schema.
    """
    jsonschema.validate(instance=instance, schema=load_schema(name))


def describe_error(exc: jsonschema.ValidationError) -> tuple[str, str]:
    """Return (field, message) for the first schema violation."""
    path = [str(p) for p in exc.absolute_path]
    if exc.validator == "required" and isinstance(exc.validator_value, list):
        missing = [k for k in exc.validator_value if isinstance(exc.instance, dict) and k not in exc.instance]
        if missing:
            path.append(missing[0])
    field = ".".join(path) or "body"
    return field, f"{field}: {exc.message}"
