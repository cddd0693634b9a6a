"""
AuditorService -- tamper-evident governance audit trail.

Responsibility:
    Appends hash-chained audit entries for status transitions, milestone
    effects, amendments, archiving and emergency unlocks.  Provides chain
    validation for tamper detection and trace queries for review.

Architecture position:
    Kernel > Services -- imperative shell, called by the governance
    services after their domain write has committed.

Invariants enforced:
    - Audit chain integrity: ``hash = H(entity_type | entity_id | action |
      payload_hash | prev_hash)``.
    - Append-only: entries are never modified or deleted (ORM listeners).
    - Best effort: ``log`` never raises.  A failed audit write is rolled
      back on its own and logged; the governance change it describes has
      already been committed and stays committed.

Failure modes:
    - AuditChainBrokenError from ``validate_chain`` when a stored hash or
      link does not match.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from boatyard_kernel.domain.actors import AuditContext
from boatyard_kernel.domain.clock import Clock, SystemClock
from boatyard_kernel.exceptions import AuditChainBrokenError
from boatyard_kernel.logging_config import get_logger
from boatyard_kernel.models.audit_entry import AuditAction, AuditEntryModel, AuditSeverity
from boatyard_kernel.utils.hashing import canonicalize_json, hash_audit_entry, hash_payload

logger = get_logger("services.auditor")


@dataclass(frozen=True)
class AuditTraceEntry:
    """A single entry in an audit trace."""

    seq: int
    action: AuditAction
    severity: AuditSeverity
    description: str
    occurred_at: datetime
    actor_id: UUID
    actor_name: str
    payload: dict[str, Any]
    hash: str


@dataclass(frozen=True)
class AuditTrace:
    """All audit entries for one entity, in chronological order."""

    entity_type: str
    entity_id: UUID
    entries: tuple[AuditTraceEntry, ...]

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    @property
    def actions(self) -> tuple[AuditAction, ...]:
        return tuple(entry.action for entry in self.entries)


class AuditorService:
    """
    Hash-chained audit log.

    Contract:
        ``log`` appends one entry linked to the previous one and commits it
        in its own transaction when ``auto_commit`` is set.

    Guarantees:
        - Every stored entry's hash covers its payload and its predecessor.
        - A failure inside ``log`` is contained: an ``audit_write_failed``
          warning is logged and None is returned.  With ``auto_commit`` the
          session is rolled back, which only discards the audit row since
          the governance change was committed first.  Without it the
          caller's transaction is left for the caller to resolve.

    Non-goals:
        - Does NOT interpret or act on audit entries.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit

    def _get_last_entry(self) -> AuditEntryModel | None:
        return self._session.execute(
            select(AuditEntryModel).order_by(AuditEntryModel.seq.desc()).limit(1)
        ).scalar_one_or_none()

    def log(
        self,
        context: AuditContext,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        description: str,
        before: Any = None,
        after: Any = None,
        metadata: dict[str, Any] | None = None,
        severity: AuditSeverity = AuditSeverity.INFO,
    ) -> AuditEntryModel | None:
        """
        Append an audit entry.

        Returns:
            The stored entry, or None when the write failed.
        """
        try:
            return self._create_entry(
                context,
                AuditAction(action),
                entity_type,
                entity_id,
                description,
                before,
                after,
                metadata,
                AuditSeverity(severity),
            )
        except Exception:
            if self._auto_commit:
                self._session.rollback()
            logger.warning(
                "audit_write_failed",
                extra={
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "action": str(action),
                },
                exc_info=True,
            )
            return None

    def _create_entry(
        self,
        context: AuditContext,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        description: str,
        before: Any,
        after: Any,
        metadata: dict[str, Any] | None,
        severity: AuditSeverity,
    ) -> AuditEntryModel:
        last = self._get_last_entry()
        seq = (last.seq + 1) if last is not None else 1
        prev_hash = last.hash if last is not None else None

        # Round-trip through canonical JSON so Decimal/UUID/datetime values
        # are stored exactly as they were hashed.
        payload = json.loads(
            canonicalize_json(
                {
                    "description": description,
                    "severity": severity.value,
                    "before": before,
                    "after": after,
                    "metadata": metadata or {},
                }
            )
        )
        payload_hash = hash_payload(payload)
        entry_hash = hash_audit_entry(
            entity_type=entity_type,
            entity_id=str(entity_id),
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        entry = AuditEntryModel(
            seq=seq,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action.value,
            severity=severity.value,
            description=description,
            actor_id=context.actor_id,
            actor_name=context.actor_name,
            occurred_at=self._clock.now(),
            payload=payload,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(entry)
        self._session.flush()
        if self._auto_commit:
            self._session.commit()

        logger.info(
            "audit_entry_created",
            extra={
                "entity_type": entity_type,
                "entity_id": str(entity_id),
                "action": action.value,
                "severity": severity.value,
                "seq": seq,
            },
        )
        return entry

    # Chain validation

    def validate_chain(self) -> bool:
        """
        Validate the entire audit chain.

        Raises:
            AuditChainBrokenError: If any stored hash or link does not match.
        """
        entries = self._session.execute(
            select(AuditEntryModel).order_by(AuditEntryModel.seq)
        ).scalars().all()

        previous: AuditEntryModel | None = None
        for entry in entries:
            expected_prev = previous.hash if previous is not None else None
            if entry.prev_hash != expected_prev:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(
                    str(entry.id),
                    expected_prev or "None",
                    entry.prev_hash or "None",
                )

            expected_hash = hash_audit_entry(
                entity_type=entry.entity_type,
                entity_id=str(entry.entity_id),
                action=entry.action,
                payload_hash=hash_payload(entry.payload or {}),
                prev_hash=entry.prev_hash,
            )
            if entry.hash != expected_hash:
                logger.critical("audit_chain_broken", extra={"seq": entry.seq})
                raise AuditChainBrokenError(str(entry.id), expected_hash, entry.hash)
            previous = entry

        logger.info("audit_chain_valid", extra={"entry_count": len(entries)})
        return True

    # Trace and query methods

    def get_trace(self, entity_type: str, entity_id: UUID) -> AuditTrace:
        """All audit entries for an entity, oldest first."""
        entries = self._session.execute(
            select(AuditEntryModel)
            .where(
                AuditEntryModel.entity_type == entity_type,
                AuditEntryModel.entity_id == entity_id,
            )
            .order_by(AuditEntryModel.seq)
        ).scalars().all()

        return AuditTrace(
            entity_type=entity_type,
            entity_id=entity_id,
            entries=tuple(
                AuditTraceEntry(
                    seq=entry.seq,
                    action=AuditAction(entry.action),
                    severity=AuditSeverity(entry.severity),
                    description=entry.description,
                    occurred_at=entry.occurred_at,
                    actor_id=entry.actor_id,
                    actor_name=entry.actor_name,
                    payload=entry.payload or {},
                    hash=entry.hash,
                )
                for entry in entries
            ),
        )

    def get_recent_entries(self, limit: int = 100) -> list[AuditEntryModel]:
        """Most recent audit entries, newest first."""
        result = self._session.execute(
            select(AuditEntryModel).order_by(AuditEntryModel.seq.desc()).limit(limit)
        )
        return list(result.scalars().all())
