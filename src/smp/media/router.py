"""Media router: image uploads under /api/v1/media."""

from __future__ import annotations

import json
import re

import structlog
from fastapi import APIRouter, Depends, File, Form, UploadFile

from smp.auth.dependencies import get_current_wallet
from smp.config import get_settings
from smp.errors import AppError, ErrorCode
from smp.media.schemas import ProfileImageUploadResponse, RelicImageUploadResponse
from smp.media.storage import PROFILE_IMAGES, RELIC_IMAGES, MediaStorage, generate_relic_metadata
from smp.schemas import Envelope, ok

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/media", tags=["Media"])

_IMAGE_TYPE = re.compile(r"^image/(jpg|jpeg|png|gif|webp)$")


async def _read_image(file: UploadFile, max_bytes: int) -> bytes:
    """Read an uploaded image, enforcing type and size."""
    if not _IMAGE_TYPE.match(file.content_type or ""):
        raise AppError.bad_request(
            ErrorCode.UNSUPPORTED_TYPE, "Only image files are allowed", {"contentType": file.content_type}
        )
    data = await file.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise AppError(ErrorCode.FILE_TOO_LARGE, "File size too large", 413, {"maxBytes": max_bytes})
    return data


@router.post("/profile-image", response_model=Envelope[ProfileImageUploadResponse])
async def upload_profile_image(
    file: UploadFile = File(...),
    wallet: str = Depends(get_current_wallet),
) -> dict[str, object]:
    data = await _read_image(file, get_settings().profile_image_max_bytes)
    try:
        stored = await MediaStorage().upload_file(data, file.filename, PROFILE_IMAGES)
    except OSError as e:
        raise AppError(ErrorCode.UPLOAD_FAILED, "Failed to upload profile image", 500, {"error": str(e)}) from e

    logger.info("profile_image_uploaded", wallet=wallet, hash=stored.content_hash)
    return ok(ProfileImageUploadResponse(image_url=stored.url, content_hash=stored.content_hash))


@router.post("/relic-image", response_model=Envelope[RelicImageUploadResponse])
async def upload_relic_image(
    file: UploadFile = File(...),
    relic_type: str = Form(..., alias="relicType", min_length=1),
    token_id: int = Form(..., alias="tokenId", ge=0),
    affixes: str | None = Form(None),
    rarity: str = Form("Common"),
    wallet: str = Depends(get_current_wallet),
) -> dict[str, object]:
    """Store a relic image and write its metadata JSON next to it."""
    parsed_affixes: dict[str, int] = {}
    if affixes:
        try:
            parsed_affixes = json.loads(affixes)
        except json.JSONDecodeError as e:
            raise AppError.bad_request(ErrorCode.VALIDATION_ERROR, "Invalid affixes JSON format") from e
        if not isinstance(parsed_affixes, dict):
            raise AppError.bad_request(ErrorCode.VALIDATION_ERROR, "Affixes must be a JSON object")

    data = await _read_image(file, get_settings().relic_image_max_bytes)
    storage = MediaStorage()
    try:
        image = await storage.upload_file(data, file.filename, RELIC_IMAGES)
        metadata = generate_relic_metadata(token_id, relic_type, image.url, parsed_affixes, rarity)
        meta = await storage.upload_metadata(metadata, token_id)
    except OSError as e:
        raise AppError(ErrorCode.UPLOAD_FAILED, "Failed to upload relic image", 500, {"error": str(e)}) from e

    logger.info("relic_image_uploaded", wallet=wallet, token_id=token_id, hash=image.content_hash)
    return ok(
        RelicImageUploadResponse(
            image_url=image.url,
            content_hash=image.content_hash,
            metadata_url=meta.url,
            metadata_hash=meta.content_hash,
        )
    )
