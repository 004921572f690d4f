"""Pydantic request/response schemas for all API endpoints.

These are wire-format schemas — separate from the domain dataclasses in
maintenance/models.py and enforcement/. They define what the API accepts
and returns.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from calmaint.enforcement.enforcer import OutboxItem
from calmaint.enforcement.gate import ServerListing
from calmaint.maintenance.formatting import ScheduleEntry
from calmaint.maintenance.models import MaintenanceEvent, Mode, Principal


# --- Events ---


class EventResponse(BaseModel):
    """A maintenance event as returned by the API."""

    id: str
    title: str
    description: str
    start_time: datetime
    end_time: datetime

    @classmethod
    def from_event(cls, event: MaintenanceEvent) -> EventResponse:
        return cls(
            id=event.id,
            title=event.title,
            description=event.description,
            start_time=event.start_time,
            end_time=event.end_time,
        )


# --- Maintenance endpoints ---


class StatusResponse(BaseModel):
    """GET /maintenance/status response body."""

    mode: Mode
    current_event: EventResponse | None = None
    next_event: EventResponse | None = None
    scheduled_count: int
    calendar_enabled: bool


class ScheduleEntryResponse(BaseModel):
    event: EventResponse
    status: str
    delta: str

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> ScheduleEntryResponse:
        return cls(
            event=EventResponse.from_event(entry.event),
            status=entry.status.value,
            delta=entry.delta,
        )


class ScheduleResponse(BaseModel):
    """GET /maintenance/schedule response body."""

    entries: list[ScheduleEntryResponse]
    rendered: str


class EndResponse(BaseModel):
    """POST /maintenance/end response body."""

    ended: bool
    mode: Mode


class SyncResponse(BaseModel):
    """POST /maintenance/sync response body — event ids by outcome."""

    added: list[str]
    updated: list[str]
    cancelled: list[str]
    unchanged: list[str]
    stale: list[str]
    expired: list[str]


# --- Gate endpoints ---


class PrincipalRequest(BaseModel):
    """A principal as reported by the proxy."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=64)
    grants: list[str] = Field(default_factory=list, max_length=32)

    def to_principal(self) -> Principal:
        return Principal(id=self.id, name=self.name, grants=frozenset(self.grants))


class LoginResponse(BaseModel):
    """POST /gate/login response body."""

    allowed: bool
    message: str | None = None
    notice: str | None = None


class LogoutRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)


class LogoutResponse(BaseModel):
    removed: bool


class OutboxItemResponse(BaseModel):
    action: str
    principal_id: str
    principal_name: str
    message: str

    @classmethod
    def from_item(cls, item: OutboxItem) -> OutboxItemResponse:
        return cls(
            action=item.action,
            principal_id=item.principal.id,
            principal_name=item.principal.name,
            message=item.message,
        )


class ListingPayload(BaseModel):
    """POST /gate/listing request and response body."""

    model_config = ConfigDict(extra="forbid")

    motd: str = Field(max_length=1024)
    version_name: str = Field(max_length=128)
    protocol: int
    online_players: int = Field(ge=0)
    max_players: int = Field(ge=0)
    sample_players: list[str] = Field(default_factory=list, max_length=100)

    def to_listing(self) -> ServerListing:
        return ServerListing(
            motd=self.motd,
            version_name=self.version_name,
            protocol=self.protocol,
            online_players=self.online_players,
            max_players=self.max_players,
            sample_players=tuple(self.sample_players),
        )

    @classmethod
    def from_listing(cls, listing: ServerListing) -> ListingPayload:
        return cls(
            motd=listing.motd,
            version_name=listing.version_name,
            protocol=listing.protocol,
            online_players=listing.online_players,
            max_players=listing.max_players,
            sample_players=list(listing.sample_players),
        )


# --- Health ---


class HealthMinimalResponse(BaseModel):
    """GET /health without auth — status only."""

    status: str


class HealthFullResponse(BaseModel):
    """GET /health with valid API key — full details."""

    status: str
    mode: Mode
    scheduled_count: int
    armed_timers: int
    calendar_enabled: bool
    state_file_present: bool
