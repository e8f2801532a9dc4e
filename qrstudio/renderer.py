"""Code-matrix renderer adapter: renderer options -> canvas (Pillow) or SVG (ElementTree) node.

The engine only depends on the ``Renderer`` protocol. ``QRCodeRenderer`` is
the bundled adapter; like the vendor renderer it stands in for, it only
understands flat background colors and paints an opaque white full-bleed
background for anything else (gradients, "no background"). The
normalizer repairs that afterwards.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Awaitable, NamedTuple, Protocol, Union

import qrcode
import qrcode.constants
from qrcode.exceptions import DataOverflowError
from PIL import Image, ImageDraw

from qrstudio.compositor import encode_data_url, load_image
from qrstudio.errors import ImageDecodeError, RendererUnavailable
from qrstudio.gradient import RasterFill, to_raster_fill
from qrstudio.logging import audit, get_logger, trace
from qrstudio.models import is_gradient_expression

log = get_logger("renderer")

SVG_NS = "http://www.w3.org/2000/svg"
RENDERER_DEFAULT_BACKGROUND = "#ffffff"

ECC_LEVELS = {
    "L": qrcode.constants.ERROR_CORRECT_L,  # 7%
    "M": qrcode.constants.ERROR_CORRECT_M,  # 15%
    "Q": qrcode.constants.ERROR_CORRECT_Q,  # 25%
    "H": qrcode.constants.ERROR_CORRECT_H,  # 30%
}

FINDER = 7
FINDER_DOT = 3


# ---------------------------------------------------------------------------
# Rendered nodes
# ---------------------------------------------------------------------------

@dataclass
class CanvasNode:
    """Raster output: transparent foreground plus the full-bleed ``background`` fill property."""

    width: int
    height: int
    foreground: Image.Image
    background: str = RENDERER_DEFAULT_BACKGROUND
    attrs: dict = field(default_factory=dict)

    def to_image(self) -> Image.Image:
        image = to_raster_fill(self.background, self.width, self.height).paint()
        image.alpha_composite(self.foreground)
        return image


@dataclass
class SvgNode:
    """Vector output backed by an ElementTree ``<svg>`` root."""

    width: int
    height: int
    root: ET.Element

    def rects(self) -> list[ET.Element]:
        return list(self.root.iter("rect"))

    def to_string(self) -> str:
        return ET.tostring(self.root, encoding="unicode")


RenderedNode = Union[CanvasNode, SvgNode]


class Renderer(Protocol):
    def render(self, options: dict) -> RenderedNode | Awaitable[RenderedNode]:
        ...


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

class Shape(NamedTuple):
    kind: str  # "rect" | "ellipse"
    x: float
    y: float
    w: float
    h: float
    radius: float = 0.0
    corners: tuple[bool, bool, bool, bool] = (True, True, True, True)  # tl, tr, br, bl


def _module_shape(pattern: str, x: float, y: float, cell: float) -> Shape:
    """Shape of one data module for a dots pattern."""
    if pattern == "dots":
        return Shape("ellipse", x, y, cell, cell)
    if pattern == "rounded":
        return Shape("rect", x, y, cell, cell, max(1, cell // 4))
    if pattern == "extra-rounded":
        return Shape("rect", x, y, cell, cell, cell / 2)
    if pattern == "classy":
        return Shape("rect", x, y, cell, cell, cell / 2, (True, False, True, False))
    if pattern == "classy-rounded":
        return Shape("rect", x, y, cell, cell, cell / 3, (True, True, True, False))
    return Shape("rect", x, y, cell, cell)


def _marker_shapes(kind: str, x: float, y: float, cell: float) -> tuple[Shape, Shape]:
    """Outer and inner (hole) shapes of a 7x7 positional-marker ring."""
    outer, inner = FINDER * cell, (FINDER - 2) * cell
    if kind == "dot":
        return Shape("ellipse", x, y, outer, outer), Shape("ellipse", x + cell, y + cell, inner, inner)
    if kind == "extra-rounded":
        return (Shape("rect", x, y, outer, outer, 2.5 * cell),
                Shape("rect", x + cell, y + cell, inner, inner, 1.5 * cell))
    return Shape("rect", x, y, outer, outer), Shape("rect", x + cell, y + cell, inner, inner)


def _marker_dot_shape(kind: str, x: float, y: float, cell: float) -> Shape:
    side = FINDER_DOT * cell
    if kind == "square":
        return Shape("rect", x, y, side, side)
    return Shape("ellipse", x, y, side, side)


def _draw_shape(draw: ImageDraw.ImageDraw, shape: Shape, fill: int) -> None:
    box = [shape.x, shape.y, shape.x + shape.w - 1, shape.y + shape.h - 1]
    if shape.kind == "ellipse":
        draw.ellipse(box, fill=fill)
    elif shape.radius > 0:
        draw.rounded_rectangle(box, radius=shape.radius, fill=fill, corners=shape.corners)
    else:
        draw.rectangle(box, fill=fill)


def _shape_path(shape: Shape) -> str:
    x, y, w, h = shape.x, shape.y, shape.w, shape.h
    if shape.kind == "ellipse":
        rx, ry = w / 2, h / 2
        return (f"M{x:g},{y + ry:g}a{rx:g},{ry:g} 0 1 0 {w:g},0"
                f"a{rx:g},{ry:g} 0 1 0 {-w:g},0Z")
    tl, tr, br, bl = (shape.radius if on else 0 for on in shape.corners)
    d = f"M{x + tl:g},{y:g}H{x + w - tr:g}"
    if tr:
        d += f"A{tr:g},{tr:g} 0 0 1 {x + w:g},{y + tr:g}"
    d += f"V{y + h - br:g}"
    if br:
        d += f"A{br:g},{br:g} 0 0 1 {x + w - br:g},{y + h:g}"
    d += f"H{x + bl:g}"
    if bl:
        d += f"A{bl:g},{bl:g} 0 0 1 {x:g},{y + h - bl:g}"
    d += f"V{y + tl:g}"
    if tl:
        d += f"A{tl:g},{tl:g} 0 0 1 {x + tl:g},{y:g}"
    return d + "Z"


def _scale_preserving_aspect(original_size: tuple[int, int], target: int) -> tuple[int, int]:
    """Scale (w, h) so the larger dimension equals *target*, preserving aspect."""
    w, h = original_size
    aspect = w / h
    if aspect >= 1:
        return target, max(1, int(target / aspect))
    return max(1, int(target * aspect)), target


@dataclass
class _Layout:
    """Pixel placement of the module grid inside the output surface."""

    modules: list[list[bool]]
    cell: int
    offset_x: int
    offset_y: int

    @property
    def count(self) -> int:
        return len(self.modules)

    def origin(self, row: int, col: int) -> tuple[int, int]:
        return self.offset_x + col * self.cell, self.offset_y + row * self.cell

    def marker_origins(self) -> dict[str, tuple[int, int]]:
        n = self.count
        return {
            "top_left": self.origin(0, 0),
            "top_right": self.origin(0, n - FINDER),
            "bottom_left": self.origin(n - FINDER, 0),
        }

    def in_marker(self, row: int, col: int) -> bool:
        n = self.count
        top, left = row < FINDER, col < FINDER
        return (top and left) or (top and col >= n - FINDER) or (row >= n - FINDER and left)


# ---------------------------------------------------------------------------
# QRCodeRenderer
# ---------------------------------------------------------------------------

def build_matrix(data: str, qr_options: dict) -> list[list[bool]]:
    """Encode *data* into the module matrix (True = dark) without a quiet zone."""
    type_number = int(qr_options.get("type_number") or 0)
    ecc = ECC_LEVELS.get(str(qr_options.get("error_correction_level", "M")).upper(), ECC_LEVELS["M"])
    qr = qrcode.QRCode(
        version=type_number or None,
        error_correction=ecc,
        box_size=1,
        border=0,
    )
    qr.add_data(data)
    try:
        qr.make(fit=type_number == 0)
    except (DataOverflowError, ValueError) as exc:
        raise RendererUnavailable(f"payload does not fit a code matrix: {exc}") from exc
    return [[bool(m) for m in row] for row in qr.modules]


class QRCodeRenderer:
    """Renders renderer options into a CanvasNode or SvgNode."""

    def render(self, options: dict) -> RenderedNode:
        width, height = int(options.get("width") or 0), int(options.get("height") or 0)
        if width <= 0 or height <= 0:
            raise RendererUnavailable(f"cannot acquire a {width}x{height} drawing surface")

        qr_options = options.get("qr_options") or {}
        modules = build_matrix(options.get("data") or "", qr_options)
        quiet = int(qr_options.get("quiet_zone", 2))
        total = len(modules) + 2 * quiet
        cell = min(width, height) // total
        if cell < 1:
            raise RendererUnavailable(f"{width}x{height} surface is too small for {total} modules")
        span = cell * len(modules)
        layout = _Layout(modules, cell, (width - span) // 2, (height - span) // 2)

        if options.get("type") == "svg":
            node = self._render_svg(options, layout, width, height)
        else:
            node = self._render_canvas(options, layout, width, height)

        audit(
            "renderer.rendered", logger=log,
            type=options.get("type", "canvas"), modules=layout.count,
            cell_px=cell, size=f"{width}x{height}",
            image=options.get("image") is not None,
        )
        return node

    # -- shared --------------------------------------------------------------

    @staticmethod
    def _background_fill(options: dict) -> str:
        color = (options.get("background_options") or {}).get("color")
        if not color or is_gradient_expression(color):
            return RENDERER_DEFAULT_BACKGROUND
        return color

    @staticmethod
    def _image_slot(options: dict, width: int, height: int) -> tuple[int, int, int, int] | None:
        """Pixel box ``(x0, y0, x1, y1)`` reserved for the embedded image, margin included."""
        if options.get("image") is None:
            return None
        image_options = options.get("image_options") or {}
        side = int(min(width, height) * float(image_options.get("image_size", 0.4)))
        if side <= 0:
            return None
        margin = int(image_options.get("margin", 0))
        x0, y0 = (width - side) // 2, (height - side) // 2
        return x0 - margin, y0 - margin, x0 + side + margin, y0 + side + margin

    @staticmethod
    def _load_embedded(options: dict) -> Image.Image | None:
        try:
            return load_image(options["image"])
        except ImageDecodeError as exc:
            log.warning("Embedded image skipped: %s", exc)
            return None

    def _data_shapes(self, options: dict, layout: _Layout, slot) -> list[Shape]:
        pattern = (options.get("dots_options") or {}).get("type", "square")
        hide = (options.get("image_options") or {}).get("hide_background_dots", True)
        shapes = []
        for r, row in enumerate(layout.modules):
            for c, dark in enumerate(row):
                if not dark or layout.in_marker(r, c):
                    continue
                x, y = layout.origin(r, c)
                if hide and slot and x + layout.cell > slot[0] and x < slot[2] \
                        and y + layout.cell > slot[1] and y < slot[3]:
                    continue
                shapes.append(_module_shape(pattern, x, y, layout.cell))
        return shapes

    @staticmethod
    def _marker_layers(options: dict, layout: _Layout):
        """Yield ``(color, outer, hole)`` for rings and ``(color, dot, None)`` for centres."""
        squares = options.get("corners_square_options") or {}
        dots = options.get("corners_dot_options") or {}
        fallback = (options.get("dots_options") or {}).get("color", "#000000")
        cell = layout.cell
        for corner, (x, y) in layout.marker_origins().items():
            sq = squares.get(corner) or squares.get("top_left") or {}
            outer, hole = _marker_shapes(sq.get("type", "square"), x, y, cell)
            yield sq.get("color") or fallback, outer, hole

            dot = dots.get(corner) or dots.get("top_left") or {}
            yield dot.get("color") or fallback, _marker_dot_shape(dot.get("type", "dot"), x + 2 * cell, y + 2 * cell, cell), None

    # -- canvas --------------------------------------------------------------

    @trace
    def _render_canvas(self, options: dict, layout: _Layout, width: int, height: int) -> CanvasNode:
        foreground = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        fills: dict[str, Image.Image] = {}

        def paint(color: str, shapes, holes=()) -> None:
            mask = Image.new("L", (width, height), 0)
            draw = ImageDraw.Draw(mask)
            for shape in shapes:
                _draw_shape(draw, shape, 255)
            for shape in holes:
                _draw_shape(draw, shape, 0)
            if color not in fills:
                fills[color] = to_raster_fill(color, width, height).paint()
            foreground.paste(fills[color], (0, 0), mask)

        slot = self._image_slot(options, width, height)
        paint((options.get("dots_options") or {}).get("color", "#000000"), self._data_shapes(options, layout, slot))
        for color, shape, hole in self._marker_layers(options, layout):
            paint(color, [shape], [hole] if hole else [])

        embedded = self._load_embedded(options) if slot else None
        if embedded is not None:
            margin = int((options.get("image_options") or {}).get("margin", 0))
            target = slot[2] - slot[0] - 2 * margin
            w, h = _scale_preserving_aspect(embedded.size, target)
            logo = embedded.resize((w, h), Image.LANCZOS)
            foreground.alpha_composite(logo, ((width - w) // 2, (height - h) // 2))

        return CanvasNode(
            width=width, height=height, foreground=foreground,
            background=self._background_fill(options),
        )

    # -- svg -----------------------------------------------------------------

    @trace
    def _render_svg(self, options: dict, layout: _Layout, width: int, height: int) -> SvgNode:
        root = ET.Element("svg", {
            "xmlns": SVG_NS, "width": str(width), "height": str(height),
            "viewBox": f"0 0 {width} {height}",
        })
        defs = ET.SubElement(root, "defs")
        ET.SubElement(root, "rect", {
            "x": "0", "y": "0", "width": str(width), "height": str(height),
            "fill": self._background_fill(options),
        })
        paints: dict[str, str] = {}

        def paint_for(color: str) -> str:
            if color not in paints:
                fill: RasterFill = to_raster_fill(color, width, height)
                paints[color] = fill.svg_paint(defs, f"paint-{len(paints)}")
            return paints[color]

        slot = self._image_slot(options, width, height)
        data_shapes = self._data_shapes(options, layout, slot)
        if data_shapes:
            ET.SubElement(root, "path", {
                "fill": paint_for((options.get("dots_options") or {}).get("color", "#000000")),
                "d": "".join(_shape_path(s) for s in data_shapes),
            })
        for color, shape, hole in self._marker_layers(options, layout):
            attrs = {"fill": paint_for(color), "d": _shape_path(shape)}
            if hole is not None:
                attrs["d"] += _shape_path(hole)
                attrs["fill-rule"] = "evenodd"
            ET.SubElement(root, "path", attrs)

        embedded = self._load_embedded(options) if slot else None
        if embedded is not None:
            margin = int((options.get("image_options") or {}).get("margin", 0))
            ET.SubElement(root, "image", {
                "href": encode_data_url(embedded),
                "x": str(slot[0] + margin), "y": str(slot[1] + margin),
                "width": str(slot[2] - slot[0] - 2 * margin), "height": str(slot[3] - slot[1] - 2 * margin),
                "preserveAspectRatio": "xMidYMid meet",
            })

        if len(defs) == 0:
            root.remove(defs)
        return SvgNode(width=width, height=height, root=root)
