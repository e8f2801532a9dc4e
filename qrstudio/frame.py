"""Frame overlay: a decorative border drawn around the code, outside its scan geometry."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass

from PIL import Image, ImageDraw

from qrstudio.gradient import to_raster_fill
from qrstudio.logging import audit, get_logger

log = get_logger("frame")


@dataclass
class FrameLayer:
    """Border of ``thickness`` px around an ``inner_width x inner_height`` code box.

    The layer's own size is the inner box grown by ``thickness`` on each
    side; the code is never resized to make room.
    """

    inner_width: int
    inner_height: int
    thickness: int
    color: str = "#000000"
    corner_radius: int = 0

    @property
    def size(self) -> tuple[int, int]:
        return self.inner_width + 2 * self.thickness, self.inner_height + 2 * self.thickness

    def mask(self) -> Image.Image:
        width, height = self.size
        mask = Image.new("L", (width, height), 0)
        draw = ImageDraw.Draw(mask)
        box = [0, 0, width - 1, height - 1]
        if self.corner_radius > 0:
            draw.rounded_rectangle(box, radius=self.corner_radius, outline=255, width=self.thickness)
        else:
            draw.rectangle(box, outline=255, width=self.thickness)
        return mask

    def paint(self) -> Image.Image:
        width, height = self.size
        layer = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        layer.paste(to_raster_fill(self.color, width, height).paint(), (0, 0), self.mask())
        return layer

    def svg_elements(self, parent: ET.Element, defs: ET.Element) -> None:
        width, height = self.size
        half = self.thickness / 2
        stroke = to_raster_fill(self.color, width, height).svg_paint(defs, "frame-stroke")
        attrs = {
            "x": f"{half:g}", "y": f"{half:g}",
            "width": f"{width - self.thickness:g}", "height": f"{height - self.thickness:g}",
            "fill": "none", "stroke": stroke, "stroke-width": str(self.thickness),
        }
        if self.corner_radius > 0:
            # the stroke centreline sits half a thickness inside the outer edge
            r = max(0.0, self.corner_radius - half)
            attrs["rx"] = attrs["ry"] = f"{r:g}"
        ET.SubElement(parent, "rect", attrs)


def overlay(container, frame) -> FrameLayer | None:
    """Attach a frame layer to *container* when *frame* is enabled; no-op otherwise."""
    if frame is None or not frame.enabled:
        return None
    if container.node is None:
        log.debug("frame overlay skipped: container is empty")
        return None

    layer = FrameLayer(
        inner_width=container.node.width,
        inner_height=container.node.height,
        thickness=frame.thickness_px,
        color=frame.color,
        corner_radius=frame.corner_radius_px,
    )
    container.frame_layer = layer
    audit(
        "frame.overlaid", logger=log,
        thickness=layer.thickness, radius=layer.corner_radius, size="%dx%d" % layer.size,
    )
    return layer
