"""Style mapper: StyleConfig -> renderer options (geometry types, colors, image and matrix options)."""

from __future__ import annotations

from enum import Enum

from qrstudio.config import DEFAULT_SETTINGS, RenderSettings
from qrstudio.logging import get_logger
from qrstudio.models import (
    MARKER_CORNERS,
    CenterDotStyle,
    Corner,
    MarkerColors,
    MarkerStyle,
    Pattern,
    StyleConfig,
    corner_key,
)

log = get_logger("mapper")

DEFAULT_PATTERN = Pattern.SQUARE
DEFAULT_MARKER = MarkerStyle.SQUARE
DEFAULT_CENTER_DOT = CenterDotStyle.DOT


def _resolve(enum_cls: type[Enum], value, default: Enum) -> Enum:
    """Exhaustive lookup with a single default arm; never raises."""
    raw = getattr(value, "value", value)
    try:
        return enum_cls(str(raw).strip().lower())
    except ValueError:
        log.debug("unknown %s %r, using %s", enum_cls.__name__, raw, default.value)
        return default


def dots_type(pattern) -> str:
    return _resolve(Pattern, pattern, DEFAULT_PATTERN).value


def marker_type(marker) -> str:
    return _resolve(MarkerStyle, marker, DEFAULT_MARKER).value


def center_dot_type(center_dot) -> str:
    return _resolve(CenterDotStyle, center_dot, DEFAULT_CENTER_DOT).value


def marker_colors(style: StyleConfig, corner: str | Corner) -> MarkerColors:
    """Border and center colors for the marker at *corner*.

    Custom markers off: the foreground's authoritative color everywhere.
    Uniform mode: the global pair. Per-corner mode: the corner's own pair,
    and the top-left pair for any corner without one (there is no slot for
    a fourth corner).
    """
    fg = style.foreground.color
    custom = style.custom_markers
    if custom is None or not custom.enabled:
        return MarkerColors(border=fg, center=fg)

    if custom.per_corner:
        key = corner_key(getattr(corner, "value", corner))
        pair = custom.corners.get(key) or custom.corners.get(Corner.TOP_LEFT.value)
        if pair is not None:
            return MarkerColors(border=pair.border or custom.border, center=pair.center or custom.center)

    return MarkerColors(border=custom.border, center=custom.center)


def to_renderer_options(
    style: StyleConfig,
    data: str,
    size: int,
    *,
    image: str | None = None,
    image_size_px: float | None = None,
    settings: RenderSettings | None = None,
) -> dict:
    """Build the option record consumed by the renderer.

    Pure and total: unknown pattern/marker/center-dot values map to the
    defaults. Colors are the authoritative flattened strings, never the
    structured stop lists.

    Args:
        style: Immutable style for this pass.
        data: Payload, passed through untouched.
        size: Output width/height in pixels.
        image: Image reference to embed (e.g. a composite data URL).
            Defaults to the style's raw logo.
        image_size_px: Pixel side of a composite; sets the image slot so
            the composite is not shrunk.
        settings: Renderer knobs (output type, ECC, margins).
    """
    settings = settings or DEFAULT_SETTINGS

    if style.logo_placement != "center":
        log.debug("logo placement %r is rendered centered", style.logo_placement)

    image_ref = image if image is not None else (style.logo if style.has_logo else None)
    if image_ref is not None and image_size_px:
        image_size = image_size_px / size
    else:
        image_size = style.logo_size_percent / 100

    square_type = marker_type(style.marker)
    dot_type = center_dot_type(style.center_dot)
    pairs = {corner.value: marker_colors(style, corner) for corner in MARKER_CORNERS}

    return {
        "type": settings.output_type,
        "width": size,
        "height": size,
        "data": data,
        "image": image_ref,
        "dots_options": {
            "color": style.foreground.color,
            "type": dots_type(style.pattern),
        },
        "background_options": {
            "color": style.background.color if style.background is not None else None,
            "image": style.background_image,
        },
        "corners_square_options": {
            corner: {"color": pair.border, "type": square_type} for corner, pair in pairs.items()
        },
        "corners_dot_options": {
            corner: {"color": pair.center, "type": dot_type} for corner, pair in pairs.items()
        },
        "image_options": {
            "margin": settings.image_margin,
            "image_size": image_size,
            "hide_background_dots": settings.hide_background_dots,
        },
        "qr_options": {
            "type_number": 0,
            "mode": "Byte",
            "error_correction_level": settings.error_correction,
            "quiet_zone": settings.quiet_zone,
        },
    }
