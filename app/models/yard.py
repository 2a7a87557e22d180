"""
Container Yard Models.

This module implements the persisted yard state:
- YardSlot: Physical storage position (yard/block/bay/row/tier) and its occupant
- YardEvent: One truck visit (drop-off or pick-up) and its processing status
- MovePlanRecord: Executable move plan produced for a completed event
- Preplanning: Optional advisory placement submitted alongside an event
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    String, DateTime, ForeignKey, Integer, Float, Text, Index, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


# ============================================================================
# ENUMS
# ============================================================================

class EventStatus(str, Enum):
    """Processing status of a yard event."""
    PENDING = "PENDING"                 # Accepted label before admission
    PROCESSING = "PROCESSING"           # Plan computation in flight
    COMPLETED = "COMPLETED"             # Plan persisted, slot mutated
    FAILED = "FAILED"                   # Terminal, no slot mutation


class MoveType(str, Enum):
    """Direction of a truck visit."""
    DROP_OFF = "drop_off"               # Container enters the yard
    PICK_UP = "pick_up"                 # Container leaves the yard


class PreplanningStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# MODELS
# ============================================================================

class YardSlot(Base):
    """
    Yard slot definition.

    One row per physical position. Rows are never deleted; only the
    occupant and its classification flags change.
    """
    __tablename__ = "yard_slots"
    __table_args__ = (
        UniqueConstraint('yard', 'block', 'bay', 'row', 'tier', name='uq_yard_slot_position'),
        Index('ix_yard_slots_column', 'yard', 'block', 'bay', 'row'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Position
    yard: Mapped[str] = mapped_column(String(20), nullable=False)
    block: Mapped[str] = mapped_column(String(20), nullable=False)
    bay: Mapped[int] = mapped_column(Integer, nullable=False)
    row: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False, comment="1 = ground")
    size_ft: Mapped[int] = mapped_column(Integer, default=40, nullable=False)

    # Occupant
    container_id: Mapped[Optional[str]] = mapped_column(
        String(30),
        nullable=True,
        index=True,
        comment="NULL when the slot is empty"
    )

    # Occupant classification (0/1 flags)
    is_import: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_export: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_reefer: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_hazard: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_dry: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_inter_transhipment: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_intra_transhipment: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weight_kg: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    # Last occupancy change
    time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<YardSlot({self.yard}-{self.block}-{self.bay:02d}-{self.row:02d} "
            f"tier={self.tier} container='{self.container_id}')>"
        )


class YardEvent(Base):
    """
    Truck visit event.

    Created on submission and mutated only by the event processor.
    Kept forever as the audit trail of yard activity.
    """
    __tablename__ = "yard_events"
    __table_args__ = (
        Index('ix_yard_events_status', 'status'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    truck_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    container_id: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    move_type: Mapped[str] = mapped_column(String(20), nullable=False)

    # Classification (0/1 flags as submitted)
    is_import: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_export: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_inter_transhipment: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_intra_transhipment: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_reefer: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_hazard: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_dry: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_pick_up: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_drop_off: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weight_kg: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    size_ft: Mapped[int] = mapped_column(Integer, default=40, nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        default=EventStatus.PROCESSING.value,
        nullable=False
    )
    failure_kind: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False,
        index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        onupdate=utc_now
    )

    # Relationships
    move_plans: Mapped[List["MovePlanRecord"]] = relationship(
        "MovePlanRecord",
        back_populates="event",
        order_by="MovePlanRecord.id"
    )

    def __repr__(self) -> str:
        return f"<YardEvent(id={self.id}, {self.move_type} '{self.container_id}', status='{self.status}')>"


class MovePlanRecord(Base):
    """
    Persisted move plan.

    Immutable once written. A collection per event so re-simulation
    history can be kept, although processing writes exactly one.
    """
    __tablename__ = "move_plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("yard_events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    event_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    start_time: Mapped[float] = mapped_column(Float, nullable=False)
    end_time: Mapped[float] = mapped_column(Float, nullable=False)
    container_id: Mapped[str] = mapped_column(String(30), nullable=False)
    move_type: Mapped[str] = mapped_column(String(20), nullable=False)

    from_sid: Mapped[str] = mapped_column(String(40), nullable=False)
    from_tier: Mapped[int] = mapped_column(Integer, nullable=False)
    to_sid: Mapped[str] = mapped_column(String(40), nullable=False)
    to_tier: Mapped[int] = mapped_column(Integer, nullable=False)

    distance_crane: Mapped[float] = mapped_column(Float, nullable=False)
    crane_id: Mapped[str] = mapped_column(String(30), nullable=False)
    from_truck_zone_id: Mapped[str] = mapped_column(String(30), nullable=False)
    to_truck_zone_id: Mapped[str] = mapped_column(String(30), nullable=False)
    truck_id: Mapped[str] = mapped_column(String(50), nullable=False)
    distance_internal_truck: Mapped[float] = mapped_column(Float, nullable=False)
    distance_external_truck: Mapped[float] = mapped_column(Float, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )

    event: Mapped["YardEvent"] = relationship("YardEvent", back_populates="move_plans")


class Preplanning(Base):
    """Advisory placement submitted with an event. Stored for operators only."""
    __tablename__ = "preplannings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    event_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("yard_events.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    container_id: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    yard: Mapped[str] = mapped_column(String(20), nullable=False)
    block: Mapped[str] = mapped_column(String(20), nullable=False)
    bay: Mapped[int] = mapped_column(Integer, nullable=False)
    row: Mapped[int] = mapped_column(Integer, nullable=False)
    tier: Mapped[int] = mapped_column(Integer, nullable=False)
    time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PreplanningStatus.ACTIVE.value,
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        nullable=False
    )
