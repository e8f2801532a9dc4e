from __future__ import annotations

import pytest

from qrstudio.config import RenderSettings
from qrstudio.mapper import (
    center_dot_type,
    dots_type,
    marker_colors,
    marker_type,
    to_renderer_options,
)
from qrstudio.models import ColorOrGradient, CustomMarkers, MarkerColors, StyleConfig

GRADIENT = "linear-gradient(to right, #007b5c 0%, #00a86b 100%)"
CORNERS = ("top_left", "top_right", "bottom_left")


def test_scenario_solid_black_on_white() -> None:
    style = StyleConfig(foreground=ColorOrGradient("#000000"), background=ColorOrGradient("#ffffff"))
    options = to_renderer_options(style, "https://example.com", 300)
    assert options["dots_options"]["color"] == "#000000"
    assert options["background_options"]["color"] == "#ffffff"
    assert options["image"] is None
    assert options["width"] == options["height"] == 300
    assert options["data"] == "https://example.com"


def test_scenario_gradient_foreground_reaches_every_marker() -> None:
    style = StyleConfig(
        foreground=ColorOrGradient(GRADIENT),
        custom_markers=CustomMarkers(enabled=False, border="#ff0000", center="#00ff00"),
    )
    options = to_renderer_options(style, "x", 256)
    for corner in CORNERS:
        assert options["corners_square_options"][corner]["color"] == GRADIENT
        assert options["corners_dot_options"][corner]["color"] == GRADIENT
    assert options["dots_options"]["color"] == GRADIENT


def test_options_are_deterministic() -> None:
    style = StyleConfig(pattern="dots", marker="extra-rounded", center_dot="square")
    assert to_renderer_options(style, "x", 300) == to_renderer_options(style, "x", 300)


@pytest.mark.parametrize(
    "value, expected",
    [("square", "square"), ("dots", "dots"), ("classy-rounded", "classy-rounded"),
     ("Rounded", "rounded"), ("sparkles", "square"), (None, "square")],
)
def test_dots_type(value, expected) -> None:
    assert dots_type(value) == expected


def test_marker_and_center_defaults() -> None:
    assert marker_type("dot") == "dot"
    assert marker_type("star") == "square"
    assert center_dot_type("square") == "square"
    assert center_dot_type("triangle") == "dot"


def test_unknown_enums_never_raise() -> None:
    style = StyleConfig(pattern="zigzag", marker="hexagon", center_dot="heart")
    options = to_renderer_options(style, "x", 300)
    assert options["dots_options"]["type"] == "square"
    assert options["corners_square_options"]["top_left"]["type"] == "square"
    assert options["corners_dot_options"]["top_left"]["type"] == "dot"


def test_uniform_custom_markers() -> None:
    style = StyleConfig(custom_markers=CustomMarkers(enabled=True, border="#ff0000", center="#00ff00"))
    for corner in CORNERS:
        assert marker_colors(style, corner) == MarkerColors("#ff0000", "#00ff00")


def test_per_corner_markers_and_fourth_corner_fallback() -> None:
    markers = CustomMarkers(
        enabled=True,
        corners={
            "topLeft": MarkerColors("#111111", "#222222"),
            "top-right": MarkerColors("#333333", "#444444"),
        },
    )
    style = StyleConfig(custom_markers=markers)
    assert marker_colors(style, "top_left") == MarkerColors("#111111", "#222222")
    assert marker_colors(style, "top_right") == MarkerColors("#333333", "#444444")
    # no slot for this corner: reuse the top-left pair
    assert marker_colors(style, "bottom_left") == MarkerColors("#111111", "#222222")
    assert marker_colors(style, "bottomRight") == MarkerColors("#111111", "#222222")

    options = to_renderer_options(style, "x", 300)
    assert options["corners_square_options"]["top_right"]["color"] == "#333333"
    assert options["corners_dot_options"]["bottom_left"]["color"] == "#222222"


def test_disabled_markers_follow_foreground() -> None:
    style = StyleConfig(foreground=ColorOrGradient("#123456"))
    assert marker_colors(style, "top_right") == MarkerColors("#123456", "#123456")


def test_image_slot_uses_composite_size() -> None:
    style = StyleConfig(logo="logo.png", logo_size_percent=20)
    raw = to_renderer_options(style, "x", 300)
    assert raw["image"] == "logo.png"
    assert raw["image_options"]["image_size"] == pytest.approx(0.2)

    composed = to_renderer_options(style, "x", 300, image="data:image/png;base64,AA", image_size_px=80)
    assert composed["image"].startswith("data:")
    assert composed["image_options"]["image_size"] == pytest.approx(80 / 300)


def test_transparent_background_and_settings() -> None:
    settings = RenderSettings().merge(output_type="svg", error_correction="h", quiet_zone=4)
    options = to_renderer_options(StyleConfig(background=None), "x", 300, settings=settings)
    assert options["background_options"]["color"] is None
    assert options["type"] == "svg"
    assert options["qr_options"]["error_correction_level"] == "H"
    assert options["qr_options"]["quiet_zone"] == 4
