from __future__ import annotations

import asyncio

import numpy as np
import pytest
from PIL import Image

from qrstudio.compositor import (
    LogoCompositor,
    composite_geometry,
    decode_data_url,
    encode_data_url,
    load_image,
    shape_mask,
)
from qrstudio.errors import ImageDecodeError
from qrstudio.models import LogoBackgroundSpec


def _logo(side: int = 40, color=(255, 0, 0, 255)) -> Image.Image:
    return Image.new("RGBA", (side, side), color)


def _decode(url: str) -> Image.Image:
    return load_image(url)


def test_composite_sizing() -> None:
    compositor = LogoCompositor()
    bg = LogoBackgroundSpec(color="#ffffff", shape="circle", padding=10)
    result = asyncio.run(compositor.composite(_logo(), bg, 300, 20))
    assert result.size_px == 80
    assert _decode(result.data_url).size == (80, 80)


def test_geometry_helper() -> None:
    assert composite_geometry(300, 20, 10) == (60.0, 80)
    assert composite_geometry(256, 25, 10) == (64.0, 84)


@pytest.mark.parametrize("shape", ["circle", "square", "rounded", "diamond", "hexagon"])
def test_shape_contains_logo_box(shape) -> None:
    mask = np.asarray(shape_mask(shape, 80, 60, 10))
    assert mask.shape == (80, 80)
    # the 60x60 logo box sits at [10, 70)
    assert (mask[10:70, 10:70] == 255).all()


def test_square_fills_canvas_and_circle_does_not() -> None:
    square = np.asarray(shape_mask("square", 80, 60, 10))
    circle = np.asarray(shape_mask("circle", 80, 60, 10))
    assert (square == 255).all()
    assert circle[0, 0] == 0


def test_scenario_logo_centered_on_circle() -> None:
    compositor = LogoCompositor()
    bg = LogoBackgroundSpec(color="#00ff00", shape="circle", padding=10)
    result = asyncio.run(compositor.composite(_logo(100), bg, 256, 25))
    assert result.size_px == 84

    img = _decode(result.data_url)
    assert img.size == (84, 84)
    px = np.asarray(img)
    # 64px logo at offset 10
    assert (px[10:74, 10:74, 0] == 255).all()
    assert px[9, 40, 1] == 255
    assert px[0, 0, 3] == 0


def test_shapes_for_every_variant_keep_logo_pixels() -> None:
    compositor = LogoCompositor(supersample=2)
    for shape in ("circle", "square", "rounded", "diamond"):
        bg = LogoBackgroundSpec(color="#0000ff", shape=shape, padding=10)
        result = asyncio.run(compositor.composite(_logo(60), bg, 300, 20))
        px = np.asarray(_decode(result.data_url))
        assert (px[10:70, 10:70, 3] == 255).all(), shape


def test_gradient_background_color() -> None:
    compositor = LogoCompositor()
    bg = LogoBackgroundSpec(color="linear-gradient(to right, #000000 0%, #ffffff 100%)", shape="square", padding=10)
    result = asyncio.run(compositor.composite(_logo(10, (0, 0, 0, 0)), bg, 100, 20))
    img = _decode(result.data_url)
    assert img.getpixel((1, 20))[0] < img.getpixel((38, 20))[0]


def test_data_url_roundtrip_and_errors() -> None:
    url = encode_data_url(_logo(4))
    assert url.startswith("data:image/png;base64,")
    assert decode_data_url(url)[:8] == b"\x89PNG\r\n\x1a\n"

    with pytest.raises(ImageDecodeError):
        decode_data_url("data:image/png,raw")
    with pytest.raises(ImageDecodeError):
        load_image("data:image/png;base64,AAAA")


def test_load_image_sources(tmp_path) -> None:
    path = tmp_path / "logo.png"
    _logo(8).save(path)
    assert load_image(str(path)).size == (8, 8)
    assert load_image(path.read_bytes()).mode == "RGBA"

    with pytest.raises(ImageDecodeError) as exc:
        load_image("https://example.com/logo.png")
    assert "remote" in exc.value.reason
    with pytest.raises(ImageDecodeError):
        load_image(str(tmp_path / "missing.png"))
    with pytest.raises(ImageDecodeError):
        load_image(b"not an image")


def test_composite_raises_decode_error() -> None:
    compositor = LogoCompositor()
    with pytest.raises(ImageDecodeError):
        asyncio.run(compositor.composite(b"garbage", LogoBackgroundSpec(), 300, 20))


def test_decode_timeout_is_a_decode_error(monkeypatch) -> None:
    import qrstudio.compositor as compositor_mod

    def slow_load(source):
        import time
        time.sleep(0.5)
        return _logo()

    monkeypatch.setattr(compositor_mod, "load_image", slow_load)
    compositor = LogoCompositor(decode_timeout=0.05)
    with pytest.raises(ImageDecodeError) as exc:
        asyncio.run(compositor.load("slow.png"))
    assert "timed out" in exc.value.reason
