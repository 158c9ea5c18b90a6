"""Pydantic wire schemas for the match API.

Request:  POST <base>/match  {"metadata": [{"key": ..., "value": ...}, ...]}
Response: HTTP 200 {"utm_source"?: str, "utm_medium"?: str, "utm_campaign"?: str}
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from bridgee_sdk.core.models import AttributionRequest, AttributionResult


class MetadataItem(BaseModel):
    """One flattened request hint."""

    key: str = Field(..., min_length=1)
    value: str


class MatchRequestBody(BaseModel):
    """Body of POST /match."""

    metadata: list[MetadataItem] = Field(default_factory=list)

    @classmethod
    def from_request(cls, request: AttributionRequest) -> MatchRequestBody:
        """Flatten an AttributionRequest, one entry per non-null value."""
        return cls(
            metadata=[MetadataItem(key=key, value=value) for key, value in request.metadata_items()]
        )


class MatchResponseBody(BaseModel):
    """Successful match response. Any of the three fields may be absent or null."""

    model_config = ConfigDict(extra="ignore")

    utm_source: str | None = None
    utm_medium: str | None = None
    utm_campaign: str | None = None

    def to_result(self) -> AttributionResult:
        return AttributionResult(
            source=self.utm_source,
            medium=self.utm_medium,
            campaign=self.utm_campaign,
        )


__all__ = ["MatchRequestBody", "MatchResponseBody", "MetadataItem"]
