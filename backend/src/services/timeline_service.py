"""
Timeline service: append-only audit entries for issues and bookings.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from models import TimelineEntry, TimelineAction

logger = logging.getLogger(__name__)


class TimelineService:
    """Writes and reads timeline entries. Entries are never updated or deleted."""

    @staticmethod
    def record(
        db: Session,
        issue_id: int,
        action: TimelineAction,
        booking_id: Optional[int] = None,
        performed_by: Optional[int] = None,
        notes: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> TimelineEntry:
        """
        Append a timeline entry to the current transaction.

        The entry is added and flushed but not committed; it becomes durable
        together with the state change it describes.

        Args:
            db: Database session
            issue_id: Issue the entry belongs to
            action: Audit action
            booking_id: Booking the action applied to, if any
            performed_by: Acting user id, or None for the system
            notes: Free-text notes (hold/cancel reasons, admin notes)
            metadata: Structured details of the action

        Returns:
            The new TimelineEntry
        """
        entry = TimelineEntry(
            issue_id=issue_id,
            booking_id=booking_id,
            action=action,
            performed_by=performed_by,
            notes=notes,
            metadata_=dict(metadata or {}),
        )
        db.add(entry)
        db.flush()
        return entry

    @staticmethod
    def list_for_issue(db: Session, issue_id: int) -> List[TimelineEntry]:
        """All entries of an issue, oldest first."""
        return db.query(TimelineEntry).filter(
            TimelineEntry.issue_id == issue_id
        ).order_by(TimelineEntry.created_at, TimelineEntry.id).all()

    @staticmethod
    def list_for_booking(db: Session, booking_id: int) -> List[TimelineEntry]:
        return db.query(TimelineEntry).filter(
            TimelineEntry.booking_id == booking_id
        ).order_by(TimelineEntry.created_at, TimelineEntry.id).all()
