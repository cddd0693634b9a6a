"""
boatyard_config -- single public entrypoint for governance settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Services receive plain values built from
    the returned ``GovernanceSettings``; they never read files or
    environment variables themselves.

Architecture position:
    Configuration -- sits above ``boatyard_kernel``.  The kernel MUST NEVER
    import from ``boatyard_config``; ``boatyard_config.bridges`` translates
    settings into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- one or more settings are missing or out of range.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``BOATYARD_CONFIG_TRACE`` log entry with the settings id, version and
    SHA-256 checksum, tying each governance decision to the exact
    settings that were in force.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from boatyard_config.loader import load_yaml_file, parse_settings
from boatyard_config.schema import GovernanceSettings

_logger = logging.getLogger("boatyard_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "defaults.yaml"

SETTINGS_FILE_ENV = "BOATYARD_SETTINGS_FILE"


def get_active_settings(path: Path | str | None = None) -> GovernanceSettings:
    """The ONLY public settings entrypoint.

    Resolution order: the explicit ``path``, then the file named by
    ``BOATYARD_SETTINGS_FILE``, then the packaged ``defaults.yaml``.

    Raises:
        FileNotFoundError: If the resolved file does not exist.
        ValueError: If validation fails.
    """
    source = Path(path or os.environ.get(SETTINGS_FILE_ENV) or _DEFAULT_SETTINGS_FILE)
    if not source.is_file():
        raise FileNotFoundError(f"Settings file not found: {source}")

    settings = parse_settings(load_yaml_file(source))

    _logger.info(
        "BOATYARD_CONFIG_TRACE",
        extra={
            "trace_type": "BOATYARD_CONFIG_TRACE",
            "settings_id": settings.settings_id,
            "settings_version": settings.version,
            "source": str(source),
            "checksum": settings.checksum,
            "role_count": len(settings.roles),
            "stage_count": len(settings.production_stages),
        },
    )
    return settings


__all__ = ["GovernanceSettings", "SETTINGS_FILE_ENV", "get_active_settings"]
