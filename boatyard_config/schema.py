"""
GovernanceSettings schema.

Typed form of the YAML settings file.  The loader parses YAML into these
frozen dataclasses; ``boatyard_config.bridges`` turns them into kernel
inputs (stage definitions, the permission authority, the library
catalog).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleDef:
    """One role and the flat permission strings it grants."""

    name: str
    permissions: tuple[str, ...]


# ---------------------------------------------------------------------------
# Production
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProductionStageDef:
    code: str
    name: str
    order: int
    estimated_days: int


# ---------------------------------------------------------------------------
# Libraries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LibraryCatalogDef:
    """Approved library versions pinned at order confirmation."""

    catalog_version: str | None = None
    template_versions: tuple[tuple[str, str], ...] = ()  # (document_type, version_id)
    procedure_versions: tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Top level
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GovernanceSettings:
    """Everything the governance services read from configuration."""

    settings_id: str
    version: int
    currency: str
    default_vat_rate: Decimal
    cost_estimation_ratio: Decimal
    optimistic_retry_attempts: int
    catalog_version_prefix: str
    project_number_prefix: str
    roles: tuple[RoleDef, ...]
    production_stages: tuple[ProductionStageDef, ...]
    library: LibraryCatalogDef = field(default_factory=LibraryCatalogDef)
    checksum: str = ""

    @property
    def role_permissions(self) -> dict[str, tuple[str, ...]]:
        return {role.name: role.permissions for role in self.roles}
