"""End-to-end profile picture pipeline behind ``POST /api/generate-image``.

Steps:

1. Generate raw image bytes through the :class:`RetryController`.
2. Stage them in a per-request scratch directory.
3. Check the logo precondition and composite the watermark.
4. Publish the watermarked file through the asset store.
5. Append a gallery record.

Steps 2-5 run in a worker thread so other requests keep running.  The
scratch directory is a :class:`tempfile.TemporaryDirectory`, so every
intermediate file is removed whether the request succeeds or fails.
"""

from __future__ import annotations

import asyncio
import logging
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

from zulepfp.core.asset_store import AssetStore
from zulepfp.core.gallery_db import GalleryDB
from zulepfp.core.retry import RetryController
from zulepfp.core.watermark import WatermarkSpec, apply_watermark, load_logo

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    image_url: str
    gallery_item: dict


class PfpPipeline:
    """Wire generation, watermarking, upload and persistence together."""

    def __init__(
        self,
        retry: RetryController,
        *,
        logo_path: Path,
        watermark: WatermarkSpec,
        assets: AssetStore,
        gallery: GalleryDB,
        temp_dir: Path,
        upload_folder: str,
    ) -> None:
        self.retry = retry
        self.logo_path = Path(logo_path)
        self.watermark = watermark
        self.assets = assets
        self.gallery = gallery
        self.temp_dir = Path(temp_dir)
        self.upload_folder = upload_folder

    async def run(self, prompt: str, *, username: str | None, inscription: str | None) -> PipelineResult:
        """Run the full pipeline for one request.

        Generation awaits the upstream API.  Everything after it touches the
        filesystem or the database and runs in a worker thread.

        Raises:
            NoCredentialsError: No generation credentials are configured.
            MaxRetriesExceededError: Generation failed on every attempt.
            MissingAssetError: The logo file is missing.
        """
        image_bytes = await self.retry.generate_with_retry(prompt)
        return await asyncio.to_thread(self._publish, image_bytes, username, inscription)

    def _publish(
        self, image_bytes: bytes, username: str | None, inscription: str | None
    ) -> PipelineResult:
        """Watermark, upload and record *image_bytes*.  Blocking."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(dir=self.temp_dir, prefix="pfp-") as scratch:
            file_name = f"generated_image_{uuid.uuid4()}.png"
            generated_path = Path(scratch) / file_name
            generated_path.write_bytes(image_bytes)

            logo_bytes = load_logo(self.logo_path)

            watermarked_path = Path(scratch) / f"watermarked_{file_name}"
            watermarked_path.write_bytes(
                apply_watermark(generated_path.read_bytes(), logo_bytes, self.watermark)
            )

            image_url = self.assets.upload(
                watermarked_path,
                folder=self.upload_folder,
                public_id=watermarked_path.stem,
            )

        item = self.gallery.add_item(username, inscription, image_url)
        logger.info(f"Published gallery item {item['id']} at {image_url}")
        return PipelineResult(image_url=image_url, gallery_item=item)
