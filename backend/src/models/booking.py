"""
Booking model: the scheduling facet of an issue assignment.

A booking ties an issue to a service provider on a calendar date, records
which weekly slots it draws capacity from, and carries the concrete
``[assigned_start_time, assigned_end_time)`` range on ``scheduled_date``.

For a fixed provider and date, the ranges of all non-cancelled bookings are
pairwise disjoint. That invariant is enforced at commit time by the
assignment and extension services under a provider-scoped row lock.
"""

from datetime import date as date_type, time, datetime
from typing import List, Optional
from sqlalchemy import (
    String, Text, Boolean, Date, Time, TIMESTAMP, ForeignKey, Index, JSON, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import Base
from models.enums import AssignmentStatus, ExtensionStatus, ProofStage
from utils.datetime_utils import minutes_between
from utils.interval_utils import Interval, interval_from_times


class Booking(Base):
    """
    Assignment of an issue to a provider with a concrete time allocation.

    Lifecycle timestamps are set by the matching transition and never
    cleared; a resumed booking keeps its original ``held_at``.
    """

    __tablename__ = "bookings"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    issue_id: Mapped[int] = mapped_column(ForeignKey("issues.id"))

    provider_id: Mapped[int] = mapped_column(ForeignKey("service_providers.id"))

    scheduled_date: Mapped[date_type] = mapped_column(Date)
    """Calendar date the assigned range applies to."""

    scheduled_end_date: Mapped[Optional[date_type]] = mapped_column(Date, nullable=True)
    """Last day of a multi-day allocation; equal to scheduled_date for single-day work."""

    claimed_slot_ids: Mapped[List[int]] = mapped_column(JSON, default=list, nullable=False)
    """WeeklySlot ids whose windows this booking draws capacity from."""

    assigned_start_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    assigned_end_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)

    allocated_duration_minutes: Mapped[Optional[int]] = mapped_column(nullable=True)
    """Requested work duration; may be spread over several days/slots."""

    status: Mapped[AssignmentStatus] = mapped_column(
        SAEnum(AssignmentStatus, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        default=AssignmentStatus.ASSIGNED,
        nullable=False,
    )

    proof_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Lifecycle timestamps
    started_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    held_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    resumed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    # Relationships
    issue = relationship("Issue", back_populates="bookings")
    provider = relationship("ServiceProvider", back_populates="bookings")
    proofs = relationship("Proof", back_populates="booking", order_by="Proof.id")
    consumables = relationship("BookingConsumable", back_populates="booking", order_by="BookingConsumable.id")
    extension_requests = relationship("ExtensionRequest", back_populates="booking", order_by="ExtensionRequest.id")

    __table_args__ = (
        Index('idx_bookings_provider_date', 'provider_id', 'scheduled_date'),
        Index('idx_bookings_issue', 'issue_id'),
    )

    @property
    def has_time_range(self) -> bool:
        return self.assigned_start_time is not None and self.assigned_end_time is not None

    @property
    def time_range(self) -> Optional[Interval]:
        """Assigned range in minutes-of-day, or None when no range is set."""
        if self.assigned_start_time is None or self.assigned_end_time is None:
            return None
        return interval_from_times(self.assigned_start_time, self.assigned_end_time)

    @property
    def is_cancelled(self) -> bool:
        return self.status == AssignmentStatus.CANCELLED

    @property
    def spans_multiple_days(self) -> bool:
        return self.scheduled_end_date is not None and self.scheduled_end_date > self.scheduled_date

    @property
    def duration_minutes(self) -> Optional[int]:
        """Minutes from start to finish, or None until the work is finished."""
        if self.started_at is None or self.finished_at is None:
            return None
        return minutes_between(self.started_at, self.finished_at)

    @property
    def total_approved_extension_minutes(self) -> int:
        return sum(
            request.requested_minutes
            for request in self.extension_requests
            if request.status == ExtensionStatus.APPROVED
        )

    @property
    def overtime_minutes(self) -> Optional[int]:
        """
        Actual duration minus the allowed duration; negative means finished early.

        Approved extensions are already added to ``allocated_duration_minutes``,
        so that field is the allowed duration.
        """
        actual = self.duration_minutes
        if actual is None or self.allocated_duration_minutes is None:
            return None
        return actual - self.allocated_duration_minutes

    @property
    def completion_proofs(self) -> List["Proof"]:
        return [proof for proof in self.proofs if proof.stage == ProofStage.COMPLETION]

    def claims_slot(self, slot_id: int) -> bool:
        return slot_id in (self.claimed_slot_ids or [])

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, provider_id={self.provider_id}, date={self.scheduled_date}, "
            f"{self.assigned_start_time}-{self.assigned_end_time}, status={self.status})>"
        )
