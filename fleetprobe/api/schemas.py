"""Pydantic schemas for the status API."""

from __future__ import annotations

import base64

from pydantic import BaseModel, Field

from fleetprobe.models import Endpoint, ReferenceImage, RunState


class ImageInput(BaseModel):
    data: str = Field(..., min_length=1, description="Base64-encoded image bytes")
    mime_type: str = "image/png"

    def to_reference(self) -> ReferenceImage:
        return ReferenceImage(data=base64.b64decode(self.data, validate=True), mime_type=self.mime_type)


class RunRequest(BaseModel):
    prompt: str | None = None
    language: str | None = None
    images: list[ImageInput | None] = Field(default_factory=list, max_length=2)


class EndpointResponse(BaseModel):
    id: str
    name: str
    base_url: str

    @classmethod
    def from_model(cls, ep: Endpoint) -> "EndpointResponse":
        return cls(id=ep.id, name=ep.name, base_url=ep.base_url)


class RunAccepted(BaseModel):
    workflow: str
    endpoint_ids: list[str]


class RunStateListResponse(BaseModel):
    items: dict[str, RunState]
