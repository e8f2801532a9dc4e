"""Style data model: colors and gradients, logo background, frame and the StyleConfig aggregate."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from qrstudio.errors import StyleValidationError

_GRADIENT_RE = re.compile(r"^\s*(linear|radial|conic)-gradient\(", re.IGNORECASE)


def is_gradient_expression(value: str | None) -> bool:
    """True when *value* is a flattened CSS gradient rather than a plain color."""
    return bool(value) and _GRADIENT_RE.match(value) is not None


# ---------------------------------------------------------------------------
# Closed style vocabularies
# ---------------------------------------------------------------------------

class Pattern(str, Enum):
    SQUARE = "square"
    DOTS = "dots"
    ROUNDED = "rounded"
    CLASSY = "classy"
    CLASSY_ROUNDED = "classy-rounded"
    EXTRA_ROUNDED = "extra-rounded"


class MarkerStyle(str, Enum):
    SQUARE = "square"
    DOT = "dot"
    EXTRA_ROUNDED = "extra-rounded"


class CenterDotStyle(str, Enum):
    DOT = "dot"
    SQUARE = "square"


class LogoShape(str, Enum):
    CIRCLE = "circle"
    SQUARE = "square"
    ROUNDED = "rounded"
    DIAMOND = "diamond"


class GradientType(str, Enum):
    LINEAR = "linear"
    RADIAL = "radial"
    CONIC = "conic"


class Corner(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"


# Positional markers drawn by the renderer, in drawing order.
MARKER_CORNERS = (Corner.TOP_LEFT, Corner.TOP_RIGHT, Corner.BOTTOM_LEFT)


def corner_key(name: str) -> str:
    """Normalise ``topLeft`` / ``top-left`` / ``TOP_LEFT`` to ``top_left``."""
    snake = re.sub(r"(?<=[a-z])([A-Z])", r"_\1", str(name))
    return snake.replace("-", "_").lower()


# ---------------------------------------------------------------------------
# Colors and gradients
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColorStop:
    color: str
    position: float

    def __post_init__(self):
        if not 0 <= self.position <= 100:
            raise StyleValidationError(f"color stop position {self.position} outside 0..100")


@dataclass(frozen=True)
class GradientSpec:
    """Editable, structured gradient. Stops may arrive in any order."""

    type: str = GradientType.LINEAR.value
    direction: str = "to right"
    stops: tuple[ColorStop, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "type", str(getattr(self.type, "value", self.type)).lower())
        object.__setattr__(self, "stops", tuple(self.stops))

    def sorted_stops(self) -> tuple[ColorStop, ...]:
        # sorted() is stable: duplicate positions keep their input order
        return tuple(sorted(self.stops, key=lambda s: s.position))


@dataclass(frozen=True)
class ColorOrGradient:
    """A fill value whose ``color`` string is authoritative.

    ``color`` is either a plain color (``#007b5c``) or a flattened CSS
    gradient expression. ``gradient`` keeps the structured form editable but
    is never consulted for display once ``color`` holds the flattened string.
    """

    color: str
    gradient: GradientSpec | None = None

    @property
    def kind(self) -> str:
        return "gradient" if is_gradient_expression(self.color) else "solid"

    @property
    def is_gradient(self) -> bool:
        return self.kind == "gradient"

    @classmethod
    def solid(cls, color: str) -> "ColorOrGradient":
        return cls(color=color)


# ---------------------------------------------------------------------------
# Logo, markers, frame
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LogoBackgroundSpec:
    color: str = "#ffffff"
    shape: str = LogoShape.CIRCLE.value
    padding: float = 10

    def __post_init__(self):
        if self.padding < 0:
            raise StyleValidationError(f"logo background padding must be >= 0, got {self.padding}")


@dataclass(frozen=True)
class CompositeLogo:
    data_url: str
    size_px: int


@dataclass(frozen=True)
class MarkerColors:
    border: str
    center: str


@dataclass(frozen=True)
class CustomMarkers:
    """Custom positional-marker colors.

    Uniform mode uses ``border``/``center`` for every marker. Per-corner mode
    is active when ``corners`` has entries; only the three drawn corners
    have slots.
    """

    enabled: bool = False
    border: str = "#000000"
    center: str = "#000000"
    corners: Mapping[str, MarkerColors] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "corners", {corner_key(k): v for k, v in dict(self.corners).items()})

    @property
    def per_corner(self) -> bool:
        return bool(self.corners)


@dataclass(frozen=True)
class FrameSpec:
    enabled: bool = False
    color: str = "#000000"
    thickness_px: int = 4
    corner_radius_px: int = 0


# ---------------------------------------------------------------------------
# StyleConfig aggregate
# ---------------------------------------------------------------------------

LOGO_SIZE_RANGE = (10, 50)
FRAME_THICKNESS_RANGE = (1, 20)
FRAME_RADIUS_RANGE = (0, 50)


@dataclass(frozen=True)
class StyleConfig:
    """Full declarative description of one code's appearance.

    Enum-like fields keep whatever string the form layer sent; the mapper
    resolves unknown values to defaults.
    """

    foreground: ColorOrGradient = field(default_factory=lambda: ColorOrGradient("#000000"))
    background: ColorOrGradient | None = field(default_factory=lambda: ColorOrGradient("#ffffff"))
    background_image: str | None = None
    pattern: str = Pattern.SQUARE.value
    marker: str = MarkerStyle.SQUARE.value
    center_dot: str = CenterDotStyle.DOT.value
    custom_markers: CustomMarkers | None = None
    logo: Any = None
    logo_background: LogoBackgroundSpec | None = None
    logo_size_percent: float = 20
    logo_placement: str = "center"
    frame: FrameSpec = field(default_factory=FrameSpec)

    def __post_init__(self):
        lo, hi = LOGO_SIZE_RANGE
        if not lo <= self.logo_size_percent <= hi:
            raise StyleValidationError(f"logo_size_percent {self.logo_size_percent} outside [{lo}, {hi}]")
        if not self.frame.enabled:
            return
        lo, hi = FRAME_THICKNESS_RANGE
        if not lo <= self.frame.thickness_px <= hi:
            raise StyleValidationError(f"frame thickness {self.frame.thickness_px}px outside [{lo}, {hi}]")
        lo, hi = FRAME_RADIUS_RANGE
        if not lo <= self.frame.corner_radius_px <= hi:
            raise StyleValidationError(f"frame corner radius {self.frame.corner_radius_px}px outside [{lo}, {hi}]")

    @property
    def has_logo(self) -> bool:
        return self.logo is not None and self.logo != ""

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "StyleConfig":
        """Build a StyleConfig from the camelCase payload the form layer posts.

        Accepted keys: ``foregroundColor``, ``backgroundColor``,
        ``backgroundImage``, ``logo``, ``logoSize``, ``logoPlacement``,
        ``logoBackground``, ``frameStyle`` and ``designOptions`` (``pattern``,
        ``marker``, ``centerDotStyle``, ``customMarkers``).
        """
        design = payload.get("designOptions") or {}
        kwargs: dict[str, Any] = {
            "foreground": _color_value(payload.get("foregroundColor"), "#000000"),
            "background": _color_value(payload.get("backgroundColor", "#ffffff"), None),
            "background_image": payload.get("backgroundImage") or None,
            "pattern": design.get("pattern") or Pattern.SQUARE.value,
            "marker": design.get("marker") or MarkerStyle.SQUARE.value,
            "center_dot": design.get("centerDotStyle") or CenterDotStyle.DOT.value,
            "logo": payload.get("logo") or None,
            "logo_placement": payload.get("logoPlacement") or "center",
        }
        if payload.get("logoSize") is not None:
            kwargs["logo_size_percent"] = float(payload["logoSize"])

        markers = design.get("customMarkers")
        if markers:
            corners = {
                name: MarkerColors(border=pair.get("border") or pair.get("markerBorder"),
                                   center=pair.get("center") or pair.get("markerCenter"))
                for name, pair in (markers.get("corners") or {}).items()
            }
            kwargs["custom_markers"] = CustomMarkers(
                enabled=bool(markers.get("enabled")),
                border=markers.get("markerBorder") or "#000000",
                center=markers.get("markerCenter") or "#000000",
                corners=corners,
            )

        bg = payload.get("logoBackground")
        if bg:
            kwargs["logo_background"] = LogoBackgroundSpec(
                color=bg.get("color") or "#ffffff",
                shape=bg.get("shape") or LogoShape.CIRCLE.value,
                padding=bg.get("padding") if bg.get("padding") is not None else 10,
            )

        frame = payload.get("frameStyle")
        if frame:
            kwargs["frame"] = FrameSpec(
                enabled=bool(frame.get("enabled")),
                color=frame.get("color") or "#000000",
                thickness_px=int(frame.get("thickness", 4)),
                corner_radius_px=int(frame.get("cornerRadius", 0)),
            )
        return cls(**kwargs)


def _color_value(raw: Any, default: str | None) -> ColorOrGradient | None:
    """Accept a plain string or the editor's ``{color, isGradient, direction, colors}`` record."""
    if raw is None or raw == "":
        return ColorOrGradient(default) if default else None
    if isinstance(raw, ColorOrGradient):
        return raw
    if isinstance(raw, str):
        if is_gradient_expression(raw):
            from qrstudio.gradient import parse_css_gradient

            return ColorOrGradient(raw, parse_css_gradient(raw))
        return ColorOrGradient(raw)

    color = raw.get("color") or default
    colors = list(raw.get("colors") or [])
    gradient = None
    if raw.get("isGradient") and len(colors) >= 2:
        last = len(colors) - 1
        gradient = GradientSpec(
            type=raw.get("type") or GradientType.LINEAR.value,
            direction=raw.get("direction") or "to right",
            stops=tuple(ColorStop(c, i / last * 100) for i, c in enumerate(colors)),
        )
    return ColorOrGradient(color, gradient) if color else None
