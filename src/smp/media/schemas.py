"""Response schemas for media uploads."""

from __future__ import annotations

from smp.schemas import CamelModel


class ProfileImageUploadResponse(CamelModel):
    image_url: str
    content_hash: str


class RelicImageUploadResponse(CamelModel):
    image_url: str
    content_hash: str
    metadata_url: str
    metadata_hash: str
