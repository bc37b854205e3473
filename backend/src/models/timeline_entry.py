"""
Timeline entry model: the append-only audit trail of an issue.

Exactly one entry is written per booking transition, plus issue-level
CREATED/CANCELLED events and extension decisions. Entries are never edited
or deleted; the mapper listeners below reject any attempt to flush such a
change.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from sqlalchemy import Text, TIMESTAMP, ForeignKey, Index, JSON, Enum as SAEnum, event, inspect
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import TimelineAction


class TimelineEntry(Base):
    __tablename__ = "timeline_entries"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id"))

    booking_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bookings.id"), nullable=True)

    action: Mapped[TimelineAction] = mapped_column(
        SAEnum(TimelineAction, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
    )

    performed_by: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Acting user id; NULL means the system (e.g. auto-approval)."""

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # "metadata" is reserved on declarative classes, so the attribute carries a trailing underscore
    metadata_: Mapped[Dict[str, Any]] = mapped_column("metadata", JSON, default=dict, nullable=False)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    issue = relationship("Issue", back_populates="timeline")

    __table_args__ = (
        Index('idx_timeline_entries_issue_created', 'issue_id', 'created_at'),
        Index('idx_timeline_entries_booking', 'booking_id'),
    )

    def __repr__(self) -> str:
        return f"<TimelineEntry(id={self.id}, issue_id={self.issue_id}, action={self.action})>"


class TimelineImmutableError(RuntimeError):
    """Raised when code tries to modify or delete a timeline entry."""


@event.listens_for(TimelineEntry, "before_update")
def _reject_timeline_update(mapper, connection, target):  # type: ignore
    state = inspect(target)
    changed = [attr.key for attr in mapper.column_attrs if state.attrs[attr.key].history.has_changes()]
    if changed:
        raise TimelineImmutableError(f"Timeline entry {target.id} is append-only (attempted to change {changed})")


@event.listens_for(TimelineEntry, "before_delete")
def _reject_timeline_delete(mapper, connection, target):  # type: ignore
    raise TimelineImmutableError(f"Timeline entry {target.id} is append-only and cannot be deleted")
