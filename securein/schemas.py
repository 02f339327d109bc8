from __future__ import annotations

from typing import Annotated, Literal
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .core.clock import as_utc, from_client, to_local

Str255    = Annotated[str, Field(min_length=1, max_length=255)]
OptStr255 = Annotated[str | None, Field(max_length=255)]
OptStr64  = Annotated[str | None, Field(max_length=64)]
Password  = Annotated[str, Field(min_length=6, max_length=128)]


class CamelIn(BaseModel):
    """Request bodies arrive camelCase from the web client; snake_case also accepted."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UtcOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # SQLite hands back naive datetimes
    @field_validator("*", mode="after")
    @classmethod
    def _utc(cls, v):
        if isinstance(v, datetime):
            return as_utc(v)
        return v


# -------- Auth --------
class LoginRequest(BaseModel):
    email: Str255
    password: Str255


class RegisterRequest(BaseModel):
    name: Str255
    email: Str255
    password: Password
    role: Literal["admin", "staff"] = "staff"


class UserRead(BaseModel):
    id: UUID
    name: str
    email: str
    role: Literal["admin", "staff"]


class LoginResponse(BaseModel):
    token: str
    token_type: Literal["bearer"] = "bearer"
    expires_in: int
    user: UserRead


class UserEnvelope(BaseModel):
    user: UserRead


class MessageResponse(BaseModel):
    message: str


# -------- Events --------
class EventCreate(CamelIn):
    name: Str255
    description: str | None = None
    venue: OptStr255 = None
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def _check_dates(self):
        if from_client(self.end_date) < from_client(self.start_date):
            raise ValueError("endDate must not be before startDate")
        return self


class EventUpdate(EventCreate):
    pass


class EventRead(UtcOut):
    id: UUID
    name: str
    description: str | None
    venue: str | None
    start_date: datetime
    end_date: datetime
    created_by: UUID | None
    creator_name: str | None = None
    created_at: datetime


class EventEnvelope(BaseModel):
    message: str
    event: EventRead


# -------- Passes --------
class PassCreate(CamelIn):
    visitor_name: Str255
    visitor_phone: Annotated[str | None, Field(max_length=32)] = None
    visit_type: OptStr64 = None
    id_type: OptStr64 = None
    id_number: OptStr64 = None
    event_id: UUID | None = None
    student_name: OptStr255 = None
    relation_to_student: OptStr64 = None
    department: OptStr255 = None
    purpose: str | None = None
    valid_from: datetime
    valid_until: datetime

    @model_validator(mode="after")
    def _check_window(self):
        if from_client(self.valid_until) <= from_client(self.valid_from):
            raise ValueError("validUntil must be after validFrom")
        return self


class PassRead(UtcOut):
    id: UUID
    pass_id: str
    visitor_name: str
    visitor_phone: str | None
    visit_type: str | None
    id_type: str | None
    id_number: str | None
    student_name: str | None
    relation_to_student: str | None
    department: str | None
    purpose: str | None
    event_id: UUID | None
    event_name: str | None = None
    created_by: UUID | None
    valid_from: datetime
    valid_until: datetime
    qr_code: str
    status: str
    entry_status: Literal["entered", "exited"] | None
    entry_time: datetime | None
    exit_time: datetime | None
    deleted_at: datetime | None
    created_at: datetime


class PassValidationRead(PassRead):
    # reported status may be "pending", which is never stored
    validation_message: str
    valid_from_local: str | None = None
    valid_until_local: str | None = None

    @model_validator(mode="after")
    def _local_times(self):
        self.valid_from_local = to_local(self.valid_from)
        self.valid_until_local = to_local(self.valid_until)
        return self


class PassEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    pass_: PassRead = Field(alias="pass")


class PassValidationEnvelope(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    pass_: PassValidationRead = Field(alias="pass")


class ScanResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    action: Literal["entry", "exit"]
    pass_: PassRead = Field(alias="pass")


# -------- Reports --------
class RecentVisitor(UtcOut):
    visitor_name: str
    visit_type: str | None
    valid_from: datetime
    valid_until: datetime


class ReportRead(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    visitor_entries: int
    passes_generated: int
    events_count: int
    recent_visitors: list[RecentVisitor]
