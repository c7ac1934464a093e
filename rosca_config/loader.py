"""
Configuration Loader (``rosca_config.loader``).

Responsibility
--------------
Loads a configuration-set YAML file and parses it into the frozen
``rosca_config.schema`` dataclasses.  Runtime callers go through
``rosca_config.get_active_config()`` instead of calling this directly.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from rosca_config.schema import (
    ContributionBounds,
    EngineSettings,
    IntervalDef,
    RetryPolicy,
)

_FREQUENCIES = ("weekly", "biweekly", "monthly")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_bounds(data: dict[str, Any]) -> ContributionBounds:
    return ContributionBounds(minimum=int(data["min"]), maximum=int(data["max"]))


def parse_retry(data: dict[str, Any]) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=int(data["max_attempts"]),
        base_backoff_ms=int(data.get("base_backoff_ms", 20)),
        max_backoff_ms=int(data.get("max_backoff_ms", 250)),
    )


def parse_schedule(data: dict[str, Any]) -> dict[str, IntervalDef]:
    schedule: dict[str, IntervalDef] = {}
    for name, entry in data.items():
        if name not in _FREQUENCIES:
            raise ValueError(f"Unknown frequency in schedule: {name!r}")
        entry = entry or {}
        schedule[name] = IntervalDef(
            days=int(entry.get("days", 0)),
            months=int(entry.get("months", 0)),
        )
    missing = [f for f in _FREQUENCIES if f not in schedule]
    if missing:
        raise KeyError(f"schedule is missing frequencies: {', '.join(missing)}")
    return schedule


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """Parse a full configuration document."""
    pools = data["pools"]
    default_max_members = int(pools["default_max_members"])
    if default_max_members < 2:
        raise ValueError("default_max_members must be >= 2")
    return EngineSettings(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        contribution_bounds=parse_bounds(pools["contribution"]),
        default_max_members=default_max_members,
        retry=parse_retry(data["retry"]),
        schedule=parse_schedule(data["schedule"]),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 over the canonical JSON form of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
