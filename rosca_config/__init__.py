"""
rosca_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    directly.  Returns a frozen ``EngineSettings``.

Architecture position:
    Configuration -- YAML-driven settings.  This package sits above
    ``rosca_kernel`` and below ``rosca_services``.  The kernel MUST NEVER
    import from ``rosca_config``; ``EngineSettings.schedule_intervals()``
    translates settings into kernel-compatible inputs.

Failure modes:
    - ``FileNotFoundError`` -- no configuration set with the requested name.
    - ``ValueError`` / ``KeyError`` -- schema or structural errors.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``ROSCA_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying every operation to the settings that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from rosca_config.loader import load_yaml_file, parse_settings
from rosca_config.schema import (
    ContributionBounds,
    EngineSettings,
    IntervalDef,
    RetryPolicy,
)

_logger = logging.getLogger("rosca_kernel.config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(
    set_name: str = "default",
    config_dir: Path | None = None,
) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Args:
        set_name: Name of the configuration set (``<set_name>.yaml``).
        config_dir: Override path to the configuration sets directory.
            Defaults to rosca_config/sets/.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError / KeyError: If the set fails validation.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = sets_dir / f"{set_name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    settings = parse_settings(load_yaml_file(path))

    _logger.info(
        "ROSCA_CONFIG_TRACE",
        extra={
            "trace_type": "ROSCA_CONFIG_TRACE",
            "config_set_id": settings.config_id,
            "config_set_version": settings.version,
            "checksum": settings.checksum,
            "contribution_min": settings.contribution_bounds.minimum,
            "contribution_max": settings.contribution_bounds.maximum,
            "retry_max_attempts": settings.retry.max_attempts,
        },
    )
    return settings


__all__ = [
    "ContributionBounds",
    "EngineSettings",
    "IntervalDef",
    "RetryPolicy",
    "get_active_config",
]
