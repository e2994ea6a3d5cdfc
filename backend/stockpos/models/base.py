from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..extensions import db
from stockpos.time_utils import utcnow, to_utc_z

SYNC_PENDING = "pending"
SYNC_SYNCED = "synced"
SYNC_FAILED = "failed"

SYNC_STATUSES = (SYNC_PENDING, SYNC_SYNCED, SYNC_FAILED)


class SyncTrackedMixin:
    """
    Columns shared by every ledger table.

    sync_status is reserved for a remote sync feature that is not part of
    this core: every insert and every update writes 'pending'.
    """
    id = db.Column(db.Integer, primary_key=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    sync_status = db.Column(db.String(16), nullable=False, default=SYNC_PENDING)

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "sync_status": self.sync_status,
        }


@event.listens_for(Session, "before_flush")
def _touch_modified_rows(session, flush_context, instances):
    for obj in session.dirty:
        if isinstance(obj, SyncTrackedMixin) and session.is_modified(obj, include_collections=False):
            obj.updated_at = utcnow()
            obj.sync_status = SYNC_PENDING
