"""Logo watermark compositing.

The logo is scaled relative to the base image width, capped at an absolute
maximum, and alpha-blended into the top-right corner::

    logo_w = min(round(W * width_fraction), max_width)
    logo_h = round(logo_w * logo_H / logo_W)
    x      = max(0, W - logo_w - padding)
    y      = padding

On bases narrower than ``logo_w + padding`` the x position clamps to 0 and
the logo may run past the right edge; Pillow clips it.

The output uses the raster format of the base image, and the function is
pure: identical inputs always give identical bytes.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageOps

from zulepfp.core.config import ZulePfpConfig
from zulepfp.core.errors import MissingAssetError

logger = logging.getLogger(__name__)

_TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class WatermarkSpec:
    """Logo sizing and placement parameters."""

    width_fraction: float = 0.4
    max_width: int = 100
    padding: int = 10
    opacity: float = 0.7

    @classmethod
    def from_config(cls, config: ZulePfpConfig) -> WatermarkSpec:
        return cls(
            width_fraction=config.logo_width_fraction,
            max_width=config.logo_max_width,
            padding=config.logo_padding,
            opacity=config.logo_opacity,
        )


@dataclass(frozen=True)
class LogoPlacement:
    x: int
    y: int
    width: int
    height: int


def compute_placement(
    base_size: tuple[int, int],
    logo_size: tuple[int, int],
    spec: WatermarkSpec,
) -> LogoPlacement:
    """Compute the logo box on the base image.

    Args:
        base_size: ``(width, height)`` of the base image.
        logo_size: ``(width, height)`` of the original logo.
        spec: Sizing parameters.

    Returns:
        Top-left position and target size of the logo.
    """
    base_w, _ = base_size
    logo_w, logo_h = logo_size

    target_w = max(1, min(round(base_w * spec.width_fraction), spec.max_width))
    target_h = max(1, round(target_w * logo_h / logo_w))

    return LogoPlacement(
        x=max(0, base_w - target_w - spec.padding),
        y=spec.padding,
        width=target_w,
        height=target_h,
    )


def load_logo(path: str | Path) -> bytes:
    """Read the logo asset from disk.

    Raises:
        MissingAssetError: If the file does not exist.
    """
    path = Path(path)
    if not path.is_file():
        logger.error(f"Logo file not found: {path}")
        raise MissingAssetError(path)
    return path.read_bytes()


def _prepare_logo(logo: Image.Image, placement: LogoPlacement, opacity: float) -> Image.Image:
    box = (placement.width, placement.height)
    # "contain" fit: keep aspect ratio inside the box, pad the rest transparent.
    fitted = ImageOps.pad(
        logo.convert("RGBA"),
        box,
        method=Image.Resampling.LANCZOS,
        color=_TRANSPARENT,
    )

    if opacity < 1.0:
        alpha = fitted.getchannel("A").point(lambda p: round(p * opacity))
        fitted.putalpha(alpha)
    return fitted


def apply_watermark(base_image: bytes, logo_image: bytes, spec: WatermarkSpec) -> bytes:
    """Composite the logo onto the base image.

    Args:
        base_image: Encoded base image (PNG, JPEG, WEBP, ...).
        logo_image: Encoded logo image, ideally with transparency.
        spec: Sizing, placement and opacity parameters.

    Returns:
        Encoded composited image in the base image's format.
    """
    with Image.open(io.BytesIO(base_image)) as base, Image.open(io.BytesIO(logo_image)) as logo:
        image_format = base.format or "PNG"
        keep_alpha = "A" in base.mode or "transparency" in base.info

        placement = compute_placement(base.size, logo.size, spec)
        overlay = _prepare_logo(logo, placement, spec.opacity)

        canvas = base.convert("RGBA")
        canvas.alpha_composite(overlay, dest=(placement.x, placement.y))

    # Keep an alpha channel only where the base had one.
    if not keep_alpha:
        canvas = canvas.convert("RGB")

    logger.debug(
        f"Watermark placed at ({placement.x}, {placement.y}) "
        f"size {placement.width}x{placement.height} on {canvas.size[0]}x{canvas.size[1]}"
    )

    buffer = io.BytesIO()
    canvas.save(buffer, format=image_format)
    return buffer.getvalue()
