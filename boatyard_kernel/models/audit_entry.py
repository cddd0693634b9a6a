"""
Module: boatyard_kernel.models.audit_entry
Responsibility: ORM persistence for the tamper-evident governance audit log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Audit entries are append-only; no UPDATE or DELETE (ORM listeners).
    - Hash chain integrity: hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash).  Validated by AuditorService.
    - seq is monotonically increasing.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    AuditEntryModel IS the audit trail.  Status transitions, configuration
    freezes, BOM generation, library pinning, amendments, archiving and
    emergency unlocks each produce one entry.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from boatyard_kernel.db.base import Base, UUIDString


class AuditAction(str, Enum):
    """Types of auditable governance actions."""

    PROJECT_CREATED = "project_created"
    STATUS_TRANSITION = "status_transition"
    PROJECT_TYPE_CHANGED = "project_type_changed"
    PROJECT_ARCHIVED = "project_archived"

    CONFIGURATION_UPDATED = "configuration_updated"
    CONFIGURATION_FROZEN = "configuration_frozen"
    EMERGENCY_UNLOCK = "emergency_unlock"
    AMENDMENT_CREATED = "amendment_created"

    BOM_GENERATED = "bom_generated"
    LIBRARY_VERSIONS_PINNED = "library_versions_pinned"
    PRODUCTION_INITIALIZED = "production_initialized"


class AuditSeverity(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class AuditEntryModel(Base):
    """
    Audit entry with hash chain for tamper evidence.

    Contract:
        Rows are append-only, never updated or deleted.  Each row's hash
        includes the previous row's hash.

    Guarantees:
        - seq is unique and monotonically increasing.
        - prev_hash is None only for the genesis entry.

    Non-goals:
        - This model does NOT enforce hash correctness at INSERT time;
          that is the responsibility of AuditorService.
    """

    __tablename__ = "audit_entries"

    __table_args__ = (
        Index("idx_audit_entity", "entity_type", "entity_id"),
        Index("idx_audit_action", "action"),
        Index("idx_audit_seq", "seq"),
    )

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    # e.g. "Project", "ConfigurationSnapshot", "ProjectAmendment"
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(10), nullable=False, default="INFO")
    description: Mapped[str] = mapped_column(Text, nullable=False)

    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    # {"before": ..., "after": ..., "metadata": ...}
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<AuditEntry {self.action} on {self.entity_type}:{self.entity_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
