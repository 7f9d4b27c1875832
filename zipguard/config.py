"""Limits configuration: defaults, then a JSON limits file, then environment."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from importlib import resources
from pathlib import Path

from jsonschema import Draft202012Validator

from zipguard.types import DEFAULT_LIMITS, ExtractionLimits

# camelCase file keys / env vars -> ExtractionLimits fields
FILE_KEYS = {
    "maxFileSize": "max_file_size",
    "maxTotalSize": "max_total_size",
    "maxFileCount": "max_file_count",
    "maxDepth": "max_depth",
}
ENV_VARS = {
    "ZIPGUARD_MAX_FILE_SIZE": "max_file_size",
    "ZIPGUARD_MAX_TOTAL_SIZE": "max_total_size",
    "ZIPGUARD_MAX_FILE_COUNT": "max_file_count",
    "ZIPGUARD_MAX_DEPTH": "max_depth",
}


def _limits_schema() -> dict:
    with resources.files("zipguard.schema").joinpath("limits.schema.json").open(
        "r", encoding="utf-8"
    ) as f:
        return json.load(f)


def validate_limits_file(data: dict) -> None:
    Draft202012Validator(_limits_schema()).validate(data)


def _from_file(path: Path) -> dict[str, int]:
    data = json.loads(path.read_text(encoding="utf-8"))
    validate_limits_file(data)
    return {FILE_KEYS[k]: v for k, v in data.items()}


def _from_env(env: Mapping[str, str]) -> dict[str, int]:
    out: dict[str, int] = {}
    for var, field in ENV_VARS.items():
        raw = env.get(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            out[field] = int(raw)
        except ValueError:
            raise ValueError(f"{var} must be an integer, got {raw!r}") from None
    return out


def load_limits(
    path: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
    **overrides: int | None,
) -> ExtractionLimits:
    """Build effective limits; later layers win.

    Layers: built-in defaults, the JSON limits file at *path*, ``ZIPGUARD_*``
    variables from *env* (``os.environ`` when omitted), then keyword
    *overrides* whose value is not None.
    """
    values = DEFAULT_LIMITS.model_dump()
    if path is not None:
        values.update(_from_file(Path(path)))
    values.update(_from_env(os.environ if env is None else env))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ExtractionLimits(**values)
