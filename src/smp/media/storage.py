"""Content-hashed file storage for uploaded media.

Files land under ``settings.upload_dir/<subfolder>/`` and are served from
``settings.storage_base_url``. Names embed the SHA-256 of the content so
re-uploads of the same bytes are recognisable.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from smp.config import Settings, get_settings
from smp.ids import now_ms

logger = logging.getLogger(__name__)

PROFILE_IMAGES = "profile-images"
RELIC_IMAGES = "relic-images"
METADATA = "metadata"


@dataclass
class StoredFile:
    url: str
    content_hash: str
    filename: str


def content_hash(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def file_extension(filename: str | None) -> str:
    if not filename or "." not in filename:
        return "bin"
    return filename.rsplit(".", 1)[-1].lower() or "bin"


def format_relic_name(relic_type: str) -> str:
    """``ShadowCloak`` / ``shadow_cloak`` → ``Shadow Cloak``."""
    spaced = re.sub(r"([A-Z])", r" \1", relic_type).replace("_", " ")
    return " ".join(word.capitalize() for word in spaced.split())


def generate_relic_metadata(
    token_id: int,
    relic_type: str,
    image_url: str,
    affixes: dict[str, int],
    rarity: str = "Common",
    settings: Settings | None = None,
) -> dict[str, Any]:
    """ERC-721 metadata document for a relic."""
    settings = settings or get_settings()
    attributes: list[dict[str, Any]] = [{"trait_type": "Rarity", "value": rarity}]
    attributes.extend({"trait_type": key, "value": value} for key, value in affixes.items())
    return {
        "name": f"Relic #{token_id} - {format_relic_name(relic_type)}",
        "description": f"An {rarity.lower()} {relic_type.lower()} relic with enhanced properties.",
        "image": image_url,
        "attributes": attributes,
        "external_url": f"https://app.{settings.domain}/relics/{token_id}",
    }


class MediaStorage:
    """Writes uploads to the local upload directory."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.base_url = settings.storage_base_url.rstrip("/")
        self.root = Path(settings.upload_dir)

    async def _write(self, relative: str, data: bytes) -> None:
        path = self.root / relative
        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)

    async def upload_file(self, data: bytes, original_name: str | None, subfolder: str) -> StoredFile:
        digest = content_hash(data)
        filename = f"{now_ms()}-{digest[:16]}.{file_extension(original_name)}"
        relative = f"{subfolder}/{filename}"
        await self._write(relative, data)
        logger.info("Stored %s (%d bytes)", relative, len(data))
        return StoredFile(url=f"{self.base_url}/{relative}", content_hash=digest, filename=filename)

    async def upload_metadata(self, metadata: dict[str, Any], token_id: int) -> StoredFile:
        data = json.dumps(metadata, indent=2).encode("utf-8")
        filename = f"{token_id}.json"
        relative = f"{METADATA}/{filename}"
        await self._write(relative, data)
        return StoredFile(url=f"{self.base_url}/{relative}", content_hash=content_hash(data), filename=filename)
