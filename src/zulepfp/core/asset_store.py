"""Publishing of finished images.

:class:`LocalAssetStore` copies an image into the uploads directory and
returns the public URL under which FastAPI's ``StaticFiles`` mount serves
it.  Any store exposing the same ``upload(path, folder, public_id)``
signature can replace it.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_SAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._-]+")


class AssetStore(Protocol):
    def upload(self, path: Path, *, folder: str, public_id: str) -> str: ...


def _safe(segment: str) -> str:
    cleaned = _SAFE_SEGMENT.sub("-", segment).strip(".-")
    if not cleaned:
        raise ValueError(f"Invalid asset path segment: {segment!r}")
    return cleaned


class LocalAssetStore:
    """File-system asset store published under a URL prefix.

    Args:
        root_dir: Directory served at ``base_url``.
        base_url: Public URL prefix (absolute or site-relative).
    """

    def __init__(self, root_dir: Path, base_url: str) -> None:
        self.root_dir = Path(root_dir)
        self.base_url = base_url.rstrip("/")
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def upload(self, path: Path, *, folder: str, public_id: str) -> str:
        """Publish *path* as ``folder/public_id<suffix>`` and return its URL.

        Raises:
            FileNotFoundError: If *path* does not exist.
        """
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(path)

        filename = f"{_safe(public_id)}{path.suffix.lower()}"
        target_dir = self.root_dir / _safe(folder)
        target_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(path, target_dir / filename)

        url = f"{self.base_url}/{target_dir.name}/{filename}"
        logger.info(f"Uploaded {path.name} -> {url}")
        return url
