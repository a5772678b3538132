"""Pydantic models for relay API payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RelayResponse(BaseModel):
    """Base payload; every relay response carries a success flag."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = True


class SessionCreatedResponse(RelayResponse):
    """Payload returned to a receiver that requested a session."""

    session_id: str
    full_url: str = Field(alias="fullURL")
    qr_code_data: str
    timeout_ms: int
    polling_interval_ms: int
    expires_at: datetime
    deadline_ms: int


class SenderConnectedResponse(RelayResponse):
    """Payload returned to a sender that attached to a session."""

    session_id: str
    timeout_ms: int
    polling_interval_ms: int


class StatusResponse(RelayResponse):
    """Payload returned to a polling client."""

    session_status: str
    partner_connected: bool
    remaining_timeout_ms: int
    new_image_ids: list[str] = Field(default_factory=list)
    photo_count: int = 0


class UploadResponse(RelayResponse):
    """Payload returned for an accepted upload."""

    image_id: str
    message: str


class ErrorResponse(RelayResponse):
    """Payload returned for any failed operation."""

    success: bool = False
    message: str
    error_code: str | None = None
