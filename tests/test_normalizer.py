from __future__ import annotations

import xml.etree.ElementTree as ET

import pytest
from PIL import Image

from qrstudio.models import ColorOrGradient
from qrstudio.normalizer import normalize, resolve_background
from qrstudio.renderer import CanvasNode, SvgNode

GRADIENT = ColorOrGradient("linear-gradient(to right, #000000 0%, #ffffff 100%)")


def _canvas() -> CanvasNode:
    return CanvasNode(width=10, height=10, foreground=Image.new("RGBA", (10, 10)))


def _svg(*rects: dict) -> SvgNode:
    root = ET.Element("svg", {"width": "10", "height": "10"})
    for attrs in rects:
        ET.SubElement(root, "rect", attrs)
    return SvgNode(width=10, height=10, root=root)


def test_resolve_background() -> None:
    assert resolve_background(ColorOrGradient("#123456")) == "#123456"
    assert resolve_background(GRADIENT) == "transparent"
    assert resolve_background(None) == "transparent"


def test_canvas_background_replaced() -> None:
    node = _canvas()
    assert normalize(node, ColorOrGradient("#1a1a1a")) is True
    assert node.background == "#1a1a1a"
    assert node.to_image().getpixel((0, 0)) == (0x1a, 0x1a, 0x1a, 255)


def test_canvas_transparent_for_gradient_background() -> None:
    node = _canvas()
    normalize(node, GRADIENT)
    assert node.to_image().getpixel((5, 5))[3] == 0


@pytest.mark.parametrize("background", [ColorOrGradient("#ff0000"), GRADIENT, None])
def test_normalize_is_idempotent(background) -> None:
    once, twice = _canvas(), _canvas()
    normalize(once, background)
    normalize(twice, background)
    assert normalize(twice, background) is False
    assert once.background == twice.background

    svg_once, svg_twice = _svg({"x": "0", "y": "0", "fill": "#ffffff"}), _svg({"x": "0", "y": "0", "fill": "#ffffff"})
    normalize(svg_once, background)
    normalize(svg_twice, background)
    assert normalize(svg_twice, background) is False
    assert svg_once.to_string() == svg_twice.to_string()


@pytest.mark.parametrize("fill", ["#ffffff", "#fff", "white", "rgb(255, 255, 255)", "#fcfcfc"])
def test_white_variants_patched(fill) -> None:
    node = _svg({"fill": fill})
    assert normalize(node, ColorOrGradient("#00ff00")) is True
    assert node.rects()[0].get("fill") == "#00ff00"


def test_only_first_white_origin_rect_is_patched() -> None:
    node = _svg(
        {"x": "5", "y": "0", "fill": "#ffffff"},
        {"x": "0", "y": "0", "fill": "#000000"},
        {"x": "0", "y": "0", "fill": "#ffffff"},
        {"x": "0", "y": "0", "fill": "#ffffff"},
    )
    normalize(node, None)
    fills = [r.get("fill") for r in node.rects()]
    assert fills == ["#ffffff", "#000000", "transparent", "#ffffff"]


def test_nothing_to_patch_is_a_logged_no_op(caplog) -> None:
    node = _svg({"x": "0", "y": "0", "fill": "#808080"})
    with caplog.at_level("DEBUG", logger="qrstudio"):
        assert normalize(node, ColorOrGradient("#ff0000")) is False
    assert node.rects()[0].get("fill") == "#808080"
    assert any("NormalizationSkipped" in r.getMessage() for r in caplog.records)


def test_renormalizing_with_a_new_background() -> None:
    node = _svg({"x": "0", "y": "0", "fill": "#ffffff"})
    normalize(node, ColorOrGradient("#ff0000"))
    assert normalize(node, ColorOrGradient("#0000ff")) is True
    assert node.rects()[0].get("fill") == "#0000ff"


def test_small_origin_rect_is_not_the_background() -> None:
    node = _svg(
        {"x": "0", "y": "0", "width": "5", "height": "5", "fill": "#ffffff"},
        {"x": "0", "y": "0", "width": "10", "height": "10", "fill": "#ffffff"},
    )
    assert normalize(node, ColorOrGradient("#ff0000")) is True
    assert [r.get("fill") for r in node.rects()] == ["#ffffff", "#ff0000"]


def test_percentage_extent_counts_as_full() -> None:
    node = _svg({"width": "100%", "height": "100%", "fill": "#ffffff"})
    normalize(node, None)
    assert node.rects()[0].get("fill") == "transparent"
