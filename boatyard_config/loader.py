"""
Settings Loader (``boatyard_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into a ``GovernanceSettings``
instance.  Services never call this directly; the runtime entry point is
``boatyard_config.get_active_settings()``.

Invariants enforced
-------------------
* Every parse error raises ``ValueError`` listing all problems found, not
  just the first.
* Money-like values are parsed through ``str`` into ``Decimal``; floats
  from YAML never reach pricing.
* ``compute_checksum`` is deterministic for identical input.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from boatyard_config.schema import (
    GovernanceSettings,
    LibraryCatalogDef,
    ProductionStageDef,
    RoleDef,
)

KNOWN_PERMISSIONS = frozenset({
    "project:transition",
    "project:archive",
    "configuration:update",
    "configuration:freeze",
    "amendment:create",
    "amendment:approve",
    "emergency:unlock",
})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping at top level")
    return data


def _decimal(value: Any, name: str, errors: list[str]) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        errors.append(f"{name} must be a number, got {value!r}")
        return Decimal("0")


def parse_role(name: str, permissions: Any, errors: list[str]) -> RoleDef:
    if not isinstance(permissions, list):
        errors.append(f"roles.{name} must be a list of permissions")
        return RoleDef(name=name.upper(), permissions=())
    unknown = sorted(set(map(str, permissions)) - KNOWN_PERMISSIONS)
    if unknown:
        errors.append(f"roles.{name} grants unknown permissions: {', '.join(unknown)}")
    return RoleDef(name=name.upper(), permissions=tuple(str(p) for p in permissions))


def parse_stage(data: dict[str, Any]) -> ProductionStageDef:
    return ProductionStageDef(
        code=str(data["code"]),
        name=str(data["name"]),
        order=int(data["order"]),
        estimated_days=int(data.get("estimated_days", 0)),
    )


def parse_library(data: dict[str, Any] | None) -> LibraryCatalogDef:
    data = data or {}
    templates = data.get("template_versions") or {}
    return LibraryCatalogDef(
        catalog_version=data.get("catalog_version"),
        template_versions=tuple(sorted((str(k), str(v)) for k, v in templates.items())),
        procedure_versions=tuple(str(p) for p in data.get("procedure_versions") or ()),
    )


def parse_settings(data: dict[str, Any]) -> GovernanceSettings:
    """
    Parse and validate a settings mapping.

    Raises:
        ValueError: One or more values are missing or out of range.  The
            message lists every problem.
    """
    errors: list[str] = []

    pricing = data.get("pricing") or {}
    vat_rate = _decimal(pricing.get("default_vat_rate", "21"), "pricing.default_vat_rate", errors)
    if not Decimal("0") <= vat_rate <= Decimal("100"):
        errors.append("pricing.default_vat_rate must be between 0 and 100")
    ratio = _decimal(
        pricing.get("cost_estimation_ratio", "0.6"), "pricing.cost_estimation_ratio", errors
    )
    if not Decimal("0") < ratio <= Decimal("1"):
        errors.append("pricing.cost_estimation_ratio must be greater than 0 and at most 1")
    currency = str(pricing.get("currency", "EUR"))
    if len(currency) != 3 or not currency.isalpha():
        errors.append(f"pricing.currency must be an ISO 4217 code, got {currency!r}")

    concurrency = data.get("concurrency") or {}
    attempts = concurrency.get("optimistic_retry_attempts", 3)
    if not isinstance(attempts, int) or attempts < 1:
        errors.append("concurrency.optimistic_retry_attempts must be a positive integer")
        attempts = 1

    roles_data = data.get("roles") or {}
    if not roles_data:
        errors.append("roles must define at least one role")
    roles = tuple(parse_role(str(name), perms, errors) for name, perms in roles_data.items())

    stages: list[ProductionStageDef] = []
    for index, stage_data in enumerate(data.get("production_stages") or ()):
        try:
            stages.append(parse_stage(stage_data))
        except (KeyError, TypeError, ValueError) as exc:
            errors.append(f"production_stages[{index}] is invalid: {exc}")
    codes = [s.code for s in stages]
    if len(set(codes)) != len(codes):
        errors.append("production_stages codes must be unique")
    if not stages:
        errors.append("production_stages must define at least one stage")

    numbering = data.get("numbering") or {}

    if errors:
        raise ValueError(
            "Settings validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        )

    return GovernanceSettings(
        settings_id=str(data.get("settings_id", "default")),
        version=int(data.get("version", 1)),
        currency=currency.upper(),
        default_vat_rate=vat_rate,
        cost_estimation_ratio=ratio,
        optimistic_retry_attempts=attempts,
        catalog_version_prefix=str(numbering.get("catalog_version_prefix", "catalog")),
        project_number_prefix=str(numbering.get("project_number_prefix", "PRJ")),
        roles=roles,
        production_stages=tuple(sorted(stages, key=lambda s: s.order)),
        library=parse_library(data.get("library")),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
