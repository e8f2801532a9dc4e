"""Gradient rasterizer: CSS gradient strings, canvas-style endpoint geometry and numpy raster fills.

Implements:
    to_css_string       structured gradient  -> flattened CSS expression
    parse_css_gradient  flattened expression -> structured gradient
    linear_endpoints    named / degree direction -> endpoints inside a rectangle
    to_raster_fill      any color value -> RasterFill (paintable Pillow image or SVG paint server)
"""

from __future__ import annotations

import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageColor

from qrstudio.errors import StyleValidationError
from qrstudio.logging import audit, get_logger, trace
from qrstudio.models import (
    ColorOrGradient,
    ColorStop,
    GradientSpec,
    GradientType,
    is_gradient_expression,
)

log = get_logger("gradient")

TRANSPARENT = (0, 0, 0, 0)

# Endpoints as fractions of (width, height): x1, y1, x2, y2
NAMED_DIRECTIONS = {
    "to right": (0, 0, 1, 0),
    "to left": (1, 0, 0, 0),
    "to bottom": (0, 0, 0, 1),
    "to top": (0, 1, 0, 0),
    "to bottom right": (0, 0, 1, 1),
    "to top left": (1, 1, 0, 0),
    "to bottom left": (1, 0, 0, 1),
    "to top right": (0, 1, 1, 0),
}
DEFAULT_LINEAR_DIRECTION = "to right"

RADIAL_SHAPES = ("circle", "ellipse")
RADIAL_ANCHORS = ("center", "top", "bottom", "left", "right")
DEFAULT_RADIAL_DIRECTION = "circle"

_DEGREES_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)deg\s*$", re.IGNORECASE)
_FUNCTION_RE = re.compile(r"^\s*(linear|radial|conic)-gradient\((.*)\)\s*$", re.IGNORECASE | re.DOTALL)
_STOP_RE = re.compile(r"^(.*?)\s+(-?\d+(?:\.\d+)?)%$")


# ---------------------------------------------------------------------------
# Color helpers
# ---------------------------------------------------------------------------

def parse_color(color: str) -> tuple[int, int, int, int]:
    """Parse any CSS color Pillow understands (plus ``transparent``) to RGBA."""
    if color is None or color.strip().lower() in ("", "transparent", "none"):
        return TRANSPARENT
    try:
        return ImageColor.getcolor(color.strip(), "RGBA")
    except ValueError as exc:
        raise StyleValidationError(f"unknown color {color!r}") from exc


def _is_color(text: str) -> bool:
    try:
        parse_color(text)
    except StyleValidationError:
        return False
    return True


def rgba_to_hex(rgba: tuple[int, ...]) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgba[:3])


def _format_position(position: float) -> str:
    return f"{position:g}"


# ---------------------------------------------------------------------------
# CSS form
# ---------------------------------------------------------------------------

def _direction_for(spec: GradientSpec) -> str:
    direction = (spec.direction or "").strip()
    if spec.type == GradientType.RADIAL.value:
        shape = direction.split(" at ")[0].strip()
        return direction if shape in RADIAL_SHAPES else DEFAULT_RADIAL_DIRECTION
    return direction or DEFAULT_LINEAR_DIRECTION


def to_css_string(spec: GradientSpec | ColorOrGradient | str) -> str:
    """Render a gradient as a CSS expression; solid colors pass through unchanged.

    A ColorOrGradient returns its authoritative ``color`` string. A gradient
    with fewer than two stops collapses to the first stop's color.
    """
    if isinstance(spec, str):
        return spec
    if isinstance(spec, ColorOrGradient):
        return spec.color

    stops = spec.sorted_stops()
    if len(stops) < 2:
        return stops[0].color if stops else "transparent"

    stop_list = ", ".join(f"{s.color} {_format_position(s.position)}%" for s in stops)
    if spec.type == GradientType.RADIAL.value:
        return f"radial-gradient({_direction_for(spec)}, {stop_list})"
    if spec.type == GradientType.CONIC.value:
        return f"conic-gradient({stop_list})"
    return f"linear-gradient({_direction_for(spec)}, {stop_list})"


def flatten(spec: GradientSpec) -> ColorOrGradient:
    """Pair a structured gradient with its authoritative flattened string."""
    return ColorOrGradient(color=to_css_string(spec), gradient=spec)


def _split_top_level(args: str) -> list[str]:
    """Split on commas that are not nested inside ``rgb(...)`` and friends."""
    parts, depth, current = [], 0, []
    for ch in args:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
    parts.append("".join(current).strip())
    return [p for p in parts if p]


def _split_stop(part: str) -> tuple[str, float | None]:
    match = _STOP_RE.match(part)
    if match:
        return match.group(1).strip(), float(match.group(2))
    return part.strip(), None


def parse_css_gradient(text: str) -> GradientSpec | None:
    """Recover a structured gradient from a flattened CSS expression.

    Returns None when *text* is not a gradient. Stops without an explicit
    position are spread evenly, as CSS does for the simple case.
    """
    match = _FUNCTION_RE.match(text or "")
    if not match:
        return None
    kind = match.group(1).lower()
    parts = _split_top_level(match.group(2))
    if not parts:
        return None

    direction = ""
    first_color, _ = _split_stop(parts[0])
    if not _is_color(first_color):
        direction = parts.pop(0)

    raw_stops = [_split_stop(p) for p in parts]
    last = max(len(raw_stops) - 1, 1)
    stops = []
    for i, (color, position) in enumerate(raw_stops):
        if position is None:
            position = i / last * 100 if len(raw_stops) > 1 else 0.0
        stops.append(ColorStop(color, min(100.0, max(0.0, position))))

    if kind == GradientType.CONIC.value:
        direction = ""
    elif not direction:
        direction = DEFAULT_RADIAL_DIRECTION if kind == GradientType.RADIAL.value else "to bottom"
    return GradientSpec(type=kind, direction=direction, stops=tuple(stops))


def is_gradient(value: str | ColorOrGradient | None) -> bool:
    if isinstance(value, ColorOrGradient):
        return value.is_gradient
    return is_gradient_expression(value)


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

def parse_degrees(direction: str) -> float | None:
    match = _DEGREES_RE.match(direction or "")
    return float(match.group(1)) if match else None


def linear_endpoints(direction: str, width: float, height: float) -> tuple[float, float, float, float]:
    """Endpoints ``(x1, y1, x2, y2)`` of a linear gradient inside a ``width x height`` box.

    Named directions use fixed corner/edge pairs. A degree angle projects
    from the box centre by ``(cos θ · width, sin θ · height)``; this
    ellipse-normalised vector is not CSS angle semantics, it matches the
    canvas preview pixel for pixel. Unknown directions fall back to
    ``to right``.
    """
    key = " ".join((direction or "").lower().split())
    if key in NAMED_DIRECTIONS:
        fx1, fy1, fx2, fy2 = NAMED_DIRECTIONS[key]
        return fx1 * width, fy1 * height, fx2 * width, fy2 * height

    degrees = parse_degrees(key)
    if degrees is not None:
        radians = math.radians(degrees)
        cx, cy = width / 2, height / 2
        return cx, cy, cx + math.cos(radians) * width, cy + math.sin(radians) * height

    fx1, fy1, fx2, fy2 = NAMED_DIRECTIONS[DEFAULT_LINEAR_DIRECTION]
    return fx1 * width, fy1 * height, fx2 * width, fy2 * height


# ---------------------------------------------------------------------------
# Raster fills
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RasterFill:
    """A fill resolved against a concrete ``width x height`` surface.

    ``stops`` holds ``(offset 0..1, rgba)`` pairs in ascending offset order.
    """

    kind: str
    width: int
    height: int
    color: tuple[int, int, int, int] = TRANSPARENT
    stops: tuple[tuple[float, tuple[int, int, int, int]], ...] = ()
    start: tuple[float, float] = (0.0, 0.0)
    end: tuple[float, float] = (0.0, 0.0)
    radius: float = 0.0
    angle: float = 0.0

    @property
    def center(self) -> tuple[float, float]:
        return self.width / 2, self.height / 2

    def _offsets(self) -> np.ndarray:
        """Gradient parameter t for every pixel centre."""
        ys, xs = np.mgrid[0:self.height, 0:self.width].astype(np.float64)
        xs += 0.5
        ys += 0.5

        if self.kind == GradientType.LINEAR.value:
            (x1, y1), (x2, y2) = self.start, self.end
            dx, dy = x2 - x1, y2 - y1
            length_sq = dx * dx + dy * dy
            if length_sq == 0:
                return np.zeros_like(xs)
            return ((xs - x1) * dx + (ys - y1) * dy) / length_sq

        cx, cy = self.center
        if self.kind == GradientType.RADIAL.value:
            if self.radius <= 0:
                return np.ones_like(xs)
            return np.hypot(xs - cx, ys - cy) / self.radius

        # conic: clockwise from the +x axis (y grows downwards)
        theta = np.arctan2(ys - cy, xs - cx) - self.angle
        return np.mod(theta, 2 * math.pi) / (2 * math.pi)

    @trace
    def paint(self) -> Image.Image:
        """Rasterize into a new RGBA image of the fill's size."""
        if self.kind == "solid":
            return Image.new("RGBA", (self.width, self.height), self.color)

        t = np.clip(self._offsets(), 0.0, 1.0)
        offsets = np.array([o for o, _ in self.stops], dtype=np.float64)
        colors = np.array([c for _, c in self.stops], dtype=np.float64)
        rgba = np.empty((self.height, self.width, 4), dtype=np.uint8)
        for channel in range(4):
            values = np.interp(t, offsets, colors[:, channel])
            rgba[..., channel] = np.clip(np.rint(values), 0, 255).astype(np.uint8)
        return Image.fromarray(rgba, "RGBA")

    def svg_paint(self, defs: ET.Element, paint_id: str) -> str:
        """Register an SVG paint server in *defs* and return the ``fill`` value.

        SVG has no conic gradient; conic fills degrade to their first stop.
        """
        if self.kind == "solid":
            return "none" if self.color[3] == 0 else rgba_to_hex(self.color)
        if self.kind == GradientType.CONIC.value:
            return rgba_to_hex(self.stops[0][1])

        if self.kind == GradientType.LINEAR.value:
            (x1, y1), (x2, y2) = self.start, self.end
            node = ET.SubElement(defs, "linearGradient", {
                "id": paint_id, "gradientUnits": "userSpaceOnUse",
                "x1": f"{x1:g}", "y1": f"{y1:g}", "x2": f"{x2:g}", "y2": f"{y2:g}",
            })
        else:
            cx, cy = self.center
            node = ET.SubElement(defs, "radialGradient", {
                "id": paint_id, "gradientUnits": "userSpaceOnUse",
                "cx": f"{cx:g}", "cy": f"{cy:g}", "r": f"{self.radius:g}",
            })
        for offset, rgba in self.stops:
            attrs = {"offset": f"{offset:g}", "stop-color": rgba_to_hex(rgba)}
            if rgba[3] < 255:
                attrs["stop-opacity"] = f"{rgba[3] / 255:.3g}"
            ET.SubElement(node, "stop", attrs)
        return f"url(#{paint_id})"


def _resolve_spec(spec) -> GradientSpec | str:
    if isinstance(spec, ColorOrGradient):
        spec = spec.color
    if isinstance(spec, str) and is_gradient_expression(spec):
        parsed = parse_css_gradient(spec)
        return parsed if parsed is not None else "transparent"
    return spec


@trace
def to_raster_fill(spec: GradientSpec | ColorOrGradient | str | None, width: int, height: int) -> RasterFill:
    """Resolve a color or gradient against a ``width x height`` drawing surface.

    Linear gradients run between :func:`linear_endpoints`; radial gradients
    are centred with radius ``min(width, height) / 2``; conic gradients start
    at angle 0 from the centre. Fewer than two stops gives a solid fill of
    the first stop's color.
    """
    resolved = _resolve_spec(spec)
    if resolved is None or isinstance(resolved, str):
        return RasterFill(kind="solid", width=width, height=height, color=parse_color(resolved))

    stops = resolved.sorted_stops()
    if len(stops) < 2:
        color = parse_color(stops[0].color) if stops else TRANSPARENT
        return RasterFill(kind="solid", width=width, height=height, color=color)

    stop_table = tuple((s.position / 100, parse_color(s.color)) for s in stops)
    kind = resolved.type if resolved.type in {t.value for t in GradientType} else GradientType.LINEAR.value

    if kind == GradientType.RADIAL.value:
        fill = RasterFill(kind=kind, width=width, height=height, stops=stop_table,
                          radius=min(width, height) / 2)
    elif kind == GradientType.CONIC.value:
        fill = RasterFill(kind=kind, width=width, height=height, stops=stop_table, angle=0.0)
    else:
        x1, y1, x2, y2 = linear_endpoints(resolved.direction, width, height)
        fill = RasterFill(kind=kind, width=width, height=height, stops=stop_table,
                          start=(x1, y1), end=(x2, y2))

    audit("gradient.rasterized", logger=log, kind=kind, stops=len(stop_table), size=f"{width}x{height}")
    return fill
