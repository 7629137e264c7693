"""Per-field merge rules for workflow record updates.

Every graph node returns a ``WorkflowPatch``; ``apply_patch`` is the only
place a record changes. The rules per field are:

* last-write-wins: ``current_capability``, ``routing_reason``, cost figures,
  ``budget_approved``, ``requires_approval``, ``approved``,
  ``approval_feedback``, ``status`` and ``error``
* write-once: ``intent``, ``confidence``, ``final_output`` and
  ``completed_at`` (writing the same value again is accepted)
* shallow key-union: ``results`` and ``metadata``
* append: ``capability_history``; ``status_history`` grows on every status
  change and is never written by nodes

Status only moves forward, a terminal record accepts no changes and
``error`` may only accompany ``failed``. Violations raise
``StateTransitionError``.
"""

from __future__ import annotations

from typing import Any, Dict

from .errors import StateTransitionError
from .models import WorkflowPatch, WorkflowRecord, WorkflowStatus

WRITE_ONCE_FIELDS = frozenset({"intent", "confidence", "final_output", "completed_at"})
UNION_FIELDS = frozenset({"results", "metadata"})
APPEND_FIELDS = frozenset({"capability_history"})


def apply_patch(record: WorkflowRecord, patch: WorkflowPatch) -> WorkflowRecord:
    """Return a new record with ``patch`` merged into ``record``."""

    updates: Dict[str, Any] = {}
    for name in patch.model_fields_set:
        value = getattr(patch, name)
        current = getattr(record, name)

        if name in UNION_FIELDS:
            updates[name] = {**current, **(value or {})}
        elif name in APPEND_FIELDS:
            updates[name] = [*current, *(value or [])]
        elif name in WRITE_ONCE_FIELDS:
            if current is not None and value != current:
                raise StateTransitionError(
                    f"{name} is write-once (correlation_id={record.correlation_id})"
                )
            updates[name] = value
        elif name == "status":
            updates.update(_status_updates(record, value))
        else:
            updates[name] = value

    if not updates:
        return record

    merged = WorkflowRecord.model_validate({**record.model_dump(), **updates})

    if record.is_terminal and merged != record:
        raise StateTransitionError(
            f"workflow {record.correlation_id} is already {record.status.value}"
        )
    if merged.error is not None and merged.status != WorkflowStatus.FAILED:
        raise StateTransitionError(
            f"error may only be set on failed workflows (status={merged.status.value})"
        )
    return merged


def _status_updates(record: WorkflowRecord, status: WorkflowStatus | None) -> Dict[str, Any]:
    if status is None or status == record.status:
        return {}
    if status.rank < record.status.rank:
        raise StateTransitionError(
            f"status cannot move from {record.status.value} back to {status.value}"
        )
    return {"status": status, "status_history": [*record.status_history, status]}
