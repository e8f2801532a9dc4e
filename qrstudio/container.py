"""Render container: the committed output of the newest pass (background, code node, frame)."""

from __future__ import annotations

import copy
import xml.etree.ElementTree as ET
from dataclasses import dataclass

from PIL import Image, ImageOps

from qrstudio.compositor import encode_data_url
from qrstudio.errors import QRStudioError
from qrstudio.gradient import to_raster_fill
from qrstudio.logging import get_logger
from qrstudio.renderer import SVG_NS, CanvasNode, RenderedNode, SvgNode

log = get_logger("container")


@dataclass
class BackgroundLayer:
    """Painted beneath the code: a gradient fill and/or a cover-fitted image."""

    fill: str | None = None
    image: Image.Image | None = None

    def paint(self, width: int, height: int) -> Image.Image:
        canvas = to_raster_fill(self.fill, width, height).paint()
        if self.image is not None:
            fitted = ImageOps.fit(self.image.convert("RGBA"), (width, height), Image.LANCZOS)
            canvas.alpha_composite(fitted)
        return canvas

    def svg_elements(self, parent: ET.Element, defs: ET.Element, x: int, y: int, width: int, height: int) -> None:
        if self.fill:
            paint = to_raster_fill(self.fill, width, height).svg_paint(defs, "background-fill")
            if paint != "none":
                # paint servers are in user space of the inner box
                group = ET.SubElement(parent, "g", {"transform": f"translate({x},{y})"})
                ET.SubElement(group, "rect", {
                    "x": "0", "y": "0", "width": str(width), "height": str(height), "fill": paint,
                })
        if self.image is not None:
            fitted = ImageOps.fit(self.image.convert("RGBA"), (width, height), Image.LANCZOS)
            ET.SubElement(parent, "image", {
                "href": encode_data_url(fitted),
                "x": str(x), "y": str(y), "width": str(width), "height": str(height),
            })


class RenderContainer:
    """Holds one composed visual. Only the newest pass may mutate it."""

    def __init__(self) -> None:
        self.node: RenderedNode | None = None
        self.background_layer: BackgroundLayer | None = None
        self.frame_layer = None
        self.revision = 0

    @property
    def empty(self) -> bool:
        return self.node is None

    def clear(self) -> None:
        self.node = None
        self.background_layer = None
        self.frame_layer = None
        self.revision += 1

    def append(self, node: RenderedNode) -> None:
        self.node = node
        self.revision += 1

    # -- geometry -------------------------------------------------------------

    @property
    def inset(self) -> int:
        return self.frame_layer.thickness if self.frame_layer is not None else 0

    @property
    def size(self) -> tuple[int, int]:
        if self.node is None:
            return 0, 0
        return self.node.width + 2 * self.inset, self.node.height + 2 * self.inset

    # -- export ---------------------------------------------------------------

    def to_image(self) -> Image.Image:
        """Flatten background, code and frame into one RGBA image."""
        if self.node is None:
            raise QRStudioError("container is empty")
        if not isinstance(self.node, CanvasNode):
            raise QRStudioError("svg output has no raster form; use to_svg()")

        inset = self.inset
        image = Image.new("RGBA", self.size, (0, 0, 0, 0))
        if self.background_layer is not None:
            image.alpha_composite(self.background_layer.paint(self.node.width, self.node.height), (inset, inset))
        image.alpha_composite(self.node.to_image(), (inset, inset))
        if self.frame_layer is not None:
            image.alpha_composite(self.frame_layer.paint())
        return image

    def to_svg(self) -> str:
        """Compose an SVG document. Canvas output is embedded as a PNG image."""
        if self.node is None:
            raise QRStudioError("container is empty")

        width, height = self.size
        inset = self.inset
        root = ET.Element("svg", {
            "xmlns": SVG_NS, "width": str(width), "height": str(height),
            "viewBox": f"0 0 {width} {height}",
        })
        defs = ET.SubElement(root, "defs")
        if self.background_layer is not None:
            self.background_layer.svg_elements(root, defs, inset, inset, self.node.width, self.node.height)

        if isinstance(self.node, SvgNode):
            inner = copy.deepcopy(self.node.root)
            inner.attrib.pop("xmlns", None)
            inner.set("x", str(inset))
            inner.set("y", str(inset))
            root.append(inner)
        else:
            ET.SubElement(root, "image", {
                "href": encode_data_url(self.node.to_image()),
                "x": str(inset), "y": str(inset),
                "width": str(self.node.width), "height": str(self.node.height),
            })

        if self.frame_layer is not None:
            self.frame_layer.svg_elements(root, defs)
        if len(defs) == 0:
            root.remove(defs)
        return ET.tostring(root, encoding="unicode")
