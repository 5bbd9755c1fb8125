"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# === Document schema ===


class DocumentPayload(BaseModel):
    """Full tracker document as sent by clients.

    Only the minimum shape is checked; unknown fields are stored as-is.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    habits: list[dict[str, Any]]
    mental_state: dict[str, Any] = Field(alias="mentalState")
    school_data: dict[str, Any] | None = Field(default=None, alias="schoolData")
    updated_at: int = Field(default=0, alias="updatedAt")
    device_id: str = Field(default="", alias="deviceId")

    def to_stored(self) -> dict[str, Any]:
        """Convert to the camelCase payload that is stored and echoed."""
        return self.model_dump(by_alias=True, exclude_none=True)


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Error schema ===


class ErrorResponse(BaseModel):
    """Error body returned for every failed request."""

    error: str
