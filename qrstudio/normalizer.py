"""Post-render normalizer: replace the renderer's injected white background with the configured one."""

from __future__ import annotations

from qrstudio.errors import StyleValidationError
from qrstudio.gradient import parse_color
from qrstudio.logging import audit, get_logger
from qrstudio.models import ColorOrGradient
from qrstudio.renderer import CanvasNode, RenderedNode, SvgNode

log = get_logger("normalizer")

TRANSPARENT = "transparent"
NEAR_WHITE = 250
PATCHED_ATTR = "data-normalized"


def resolve_background(background: ColorOrGradient | None) -> str:
    """Solid color -> that color. Gradient or no background -> ``transparent``.

    Gradients and images are painted by the container underneath the code,
    so the renderer's own background has to get out of their way.
    """
    if background is None or background.is_gradient or not background.color:
        return TRANSPARENT
    return background.color


def _is_near_white(fill: str | None) -> bool:
    if not fill:
        return False
    try:
        r, g, b, a = parse_color(fill)
    except StyleValidationError:
        return False
    return a == 255 and min(r, g, b) >= NEAR_WHITE


def _at_origin(value: str | None) -> bool:
    if value is None or value.strip() == "":
        return True
    try:
        return float(value.strip().removesuffix("px")) == 0
    except ValueError:
        return False


def _full_extent(value: str | None, size: int) -> bool:
    if value is None or value.strip() in ("", "100%"):
        return True
    try:
        return float(value.strip().removesuffix("px")) == size
    except ValueError:
        return False


def _normalize_svg(node: SvgNode, resolved: str) -> bool | None:
    """None when the node holds no patchable rect."""
    for rect in node.rects():
        if rect.get(PATCHED_ATTR) is not None:
            if rect.get("fill") == resolved:
                return False
            rect.set("fill", resolved)
            return True
        if (
            _at_origin(rect.get("x")) and _at_origin(rect.get("y"))
            and _full_extent(rect.get("width"), node.width)
            and _full_extent(rect.get("height"), node.height)
            and _is_near_white(rect.get("fill"))
        ):
            rect.set("fill", resolved)
            rect.set(PATCHED_ATTR, "true")
            return True
    return None


def normalize(node: RenderedNode, background: ColorOrGradient | None) -> bool:
    """Patch *node* in place; True when something changed.

    Idempotent: a second call with the same background changes nothing.
    Finding nothing to patch is not an error.
    """
    resolved = resolve_background(background)

    if isinstance(node, CanvasNode):
        if node.background == resolved:
            return False
        previous, node.background = node.background, resolved
        audit("normalize.patched", logger=log, node="canvas", old=previous, new=resolved)
        return True

    if isinstance(node, SvgNode):
        changed = _normalize_svg(node, resolved)
        if changed is None:
            log.debug("NormalizationSkipped: no white origin rect in svg output")
            return False
        if changed:
            audit("normalize.patched", logger=log, node="svg", new=resolved)
        return changed

    log.debug("NormalizationSkipped: unsupported node %s", type(node).__name__)
    return False
