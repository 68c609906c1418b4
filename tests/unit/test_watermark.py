"""Tests for zulepfp.core.watermark - logo sizing, placement and blending.

Base images are solid black and the logo is solid opaque red, so the logo
box can be located exactly by sampling pixels.
"""

from __future__ import annotations

import io

import pytest
from PIL import Image

from zulepfp.core.errors import MissingAssetError
from zulepfp.core.watermark import (
    LogoPlacement,
    WatermarkSpec,
    apply_watermark,
    compute_placement,
    load_logo,
)

SPEC = WatermarkSpec(width_fraction=0.4, max_width=100, padding=10, opacity=0.7)
BLACK = (0, 0, 0)


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.fixture
def red_logo(make_image) -> bytes:
    return make_image((200, 100), (255, 0, 0, 255), mode="RGBA")


class TestComputePlacement:
    """Pure geometry."""

    def test_large_base_caps_at_max_width(self):
        placement = compute_placement((1000, 1000), (200, 100), SPEC)
        assert placement.width == 100
        assert placement.height == 50

    def test_small_base_uses_fraction(self):
        placement = compute_placement((100, 100), (200, 100), SPEC)
        assert placement.width == 40
        assert placement.height == 20

    def test_height_follows_logo_aspect_ratio(self):
        placement = compute_placement((1000, 1000), (300, 400), SPEC)
        assert placement.width == 100
        assert placement.height == 133

    def test_top_right_position(self):
        placement = compute_placement((1000, 800), (200, 100), SPEC)
        assert placement == LogoPlacement(x=890, y=10, width=100, height=50)

    def test_narrow_base_clamps_x_to_zero(self):
        spec = WatermarkSpec(width_fraction=1.0, max_width=100, padding=10, opacity=1.0)
        placement = compute_placement((50, 50), (100, 100), spec)
        assert placement.x == 0
        assert placement.width == 50

    def test_alternate_constants(self):
        spec = WatermarkSpec(width_fraction=0.1, max_width=50, padding=10, opacity=0.7)
        assert compute_placement((1024, 1024), (200, 100), spec).width == 50
        assert compute_placement((300, 300), (200, 100), spec).width == 30


class TestApplyWatermark:
    """Rendering on real images."""

    def test_large_base_logo_box(self, make_image, red_logo):
        out = _open(apply_watermark(make_image((1000, 1000), BLACK), red_logo, SPEC))

        # Logo spans x in [890, 990), y in [10, 60).
        assert out.getpixel((890, 10))[0] > 150
        assert out.getpixel((989, 59))[0] > 150
        assert out.getpixel((889, 10)) == BLACK
        assert out.getpixel((990, 10)) == BLACK
        assert out.getpixel((900, 9)) == BLACK
        assert out.getpixel((900, 60)) == BLACK

    def test_right_and_top_padding(self, make_image, red_logo):
        """Right edge sits `padding` px from the right, top edge `padding` px from the top."""
        out = _open(apply_watermark(make_image((100, 100), BLACK), red_logo, SPEC))

        # 40x20 logo at (50, 10).
        assert out.getpixel((89, 10))[0] > 150
        assert out.getpixel((90, 10)) == BLACK
        assert out.getpixel((50, 10))[0] > 150
        assert out.getpixel((49, 10)) == BLACK
        assert out.getpixel((60, 9)) == BLACK
        assert out.getpixel((60, 29))[0] > 150
        assert out.getpixel((60, 30)) == BLACK

    def test_opacity_blends_logo(self, make_image, red_logo):
        out = _open(apply_watermark(make_image((1000, 1000), BLACK), red_logo, SPEC))
        red, green, blue = out.getpixel((940, 30))
        assert red == pytest.approx(round(255 * 0.7), abs=2)
        assert (green, blue) == (0, 0)

    def test_full_opacity(self, make_image, red_logo):
        spec = WatermarkSpec(width_fraction=0.4, max_width=100, padding=10, opacity=1.0)
        out = _open(apply_watermark(make_image((1000, 1000), BLACK), red_logo, spec))
        assert out.getpixel((940, 30)) == (255, 0, 0)

    def test_transparent_logo_pixels_leave_base_untouched(self, make_image):
        logo = Image.new("RGBA", (100, 100), (0, 0, 0, 0))
        logo.paste((255, 0, 0, 255), (0, 0, 50, 100))
        buffer = io.BytesIO()
        logo.save(buffer, format="PNG")

        spec = WatermarkSpec(width_fraction=1.0, max_width=100, padding=0, opacity=1.0)
        out = _open(apply_watermark(make_image((100, 100), BLACK), buffer.getvalue(), spec))

        assert out.getpixel((10, 50)) == (255, 0, 0)
        assert out.getpixel((90, 50)) == BLACK

    def test_narrow_base_does_not_fail(self, make_image, red_logo):
        spec = WatermarkSpec(width_fraction=1.0, max_width=100, padding=10, opacity=1.0)
        out = _open(apply_watermark(make_image((30, 30), BLACK), red_logo, spec))
        assert out.size == (30, 30)
        assert out.getpixel((0, 10))[0] > 150

    def test_dimensions_unchanged(self, make_image, red_logo):
        out = _open(apply_watermark(make_image((640, 480), BLACK), red_logo, SPEC))
        assert out.size == (640, 480)

    @pytest.mark.parametrize("image_format", ["PNG", "JPEG", "WEBP"])
    def test_output_keeps_base_format(self, make_image, red_logo, image_format):
        base = make_image((200, 200), BLACK, image_format=image_format)
        out = _open(apply_watermark(base, red_logo, SPEC))
        assert out.format == image_format

    def test_rgb_base_stays_rgb(self, make_image, red_logo):
        out = _open(apply_watermark(make_image((200, 200), BLACK), red_logo, SPEC))
        assert out.mode == "RGB"

    def test_rgba_base_keeps_alpha(self, make_image, red_logo):
        base = make_image((200, 200), (0, 0, 0, 255), mode="RGBA")
        out = _open(apply_watermark(base, red_logo, SPEC))
        assert out.mode == "RGBA"

    def test_identical_inputs_give_identical_bytes(self, make_image, red_logo):
        base = make_image((512, 512), (20, 40, 60))
        assert apply_watermark(base, red_logo, SPEC) == apply_watermark(base, red_logo, SPEC)


class TestLoadLogo:
    def test_missing_logo_raises(self, temp_dir):
        with pytest.raises(MissingAssetError) as exc_info:
            load_logo(temp_dir / "nope.png")
        assert exc_info.value.path == temp_dir / "nope.png"

    def test_reads_existing_logo(self, temp_dir, red_logo):
        path = temp_dir / "logo.png"
        path.write_bytes(red_logo)
        assert load_logo(path) == red_logo


class TestSpecFromConfig:
    def test_from_config(self, test_config):
        spec = WatermarkSpec.from_config(test_config)
        assert spec == WatermarkSpec(width_fraction=0.4, max_width=100, padding=10, opacity=0.7)
