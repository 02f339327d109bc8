from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SqlEnum, ForeignKey, String, Text, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

from .core.clock import utcnow

Base = declarative_base()

class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"

class PassStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    USED = "used"
    CANCELLED = "cancelled"
    DELETED = "deleted"

class EntryStatus(str, Enum):
    ENTERED = "entered"
    EXITED = "exited"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(SqlEnum(UserRole), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_start_date", "start_date"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    creator: Mapped[User | None] = relationship("User", lazy="joined")

    @property
    def creator_name(self) -> str | None:
        return self.creator.name if self.creator else None


class EntryPass(Base):
    __tablename__ = "entry_passes"
    __table_args__ = (
        UniqueConstraint("pass_id", name="uq_entry_passes_pass_id"),
        Index("ix_entry_passes_status_valid_until", "status", "valid_until"),
        Index("ix_entry_passes_event", "event_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    pass_id: Mapped[str] = mapped_column(String(16), nullable=False)

    # visitor payload, carried through untouched
    visitor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    visitor_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    visit_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    id_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    id_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    student_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    relation_to_student: Mapped[str | None] = mapped_column(String(64), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)

    event_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("events.id"), nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    qr_code: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[str] = mapped_column(String(16), default=PassStatus.ACTIVE.value, nullable=False)
    entry_status: Mapped[str | None] = mapped_column(String(16), nullable=True)
    entry_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    exit_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    event: Mapped[Event | None] = relationship("Event", lazy="joined")

    @property
    def event_name(self) -> str | None:
        return self.event.name if self.event else None
