"""Logo compositor: flatten a logo onto a decorative background shape sized for the code's logo slot."""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import math
from pathlib import Path

from PIL import Image, ImageChops, ImageDraw

from qrstudio.errors import ImageDecodeError
from qrstudio.gradient import to_raster_fill
from qrstudio.logging import audit, get_logger, trace
from qrstudio.models import CompositeLogo, LogoBackgroundSpec, LogoShape

log = get_logger("compositor")

# Extra pixels the circumscribing circle / diamond keeps beyond the logo corners
CONTAINMENT_SLACK = 1.0
ROUNDED_CORNER_RATIO = 0.2


# ---------------------------------------------------------------------------
# Image sources and data URLs
# ---------------------------------------------------------------------------

def encode_data_url(image: Image.Image, fmt: str = "PNG") -> str:
    """Serialise an image to a ``data:`` URL."""
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/{fmt.lower()};base64,{b64}"


def decode_data_url(url: str) -> bytes:
    """Return the payload bytes of a base64 ``data:`` URL."""
    header, sep, payload = url.partition(",")
    if not sep or not header.startswith("data:"):
        raise ImageDecodeError(url, "not a data URL")
    if ";base64" not in header:
        raise ImageDecodeError(url, "only base64 data URLs are supported")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as exc:
        raise ImageDecodeError(url, f"bad base64 payload: {exc}") from exc


def load_image(source) -> Image.Image:
    """Decode a logo/background source into an RGBA image.

    *source* may be a Pillow image, raw bytes, a ``data:`` URL or a local
    file path. Remote URLs are not fetched.
    """
    if isinstance(source, Image.Image):
        return source.convert("RGBA")

    if isinstance(source, (bytes, bytearray)):
        raw = io.BytesIO(bytes(source))
    elif isinstance(source, (str, Path)):
        text = str(source)
        if text.startswith("data:"):
            raw = io.BytesIO(decode_data_url(text))
        elif text.startswith(("http://", "https://")):
            raise ImageDecodeError(source, "remote sources are not fetched by the engine")
        elif Path(text).is_file():
            raw = text
        else:
            raise ImageDecodeError(source, "no such file")
    else:
        raise ImageDecodeError(source, f"unsupported source type {type(source).__name__}")

    try:
        with Image.open(raw) as img:
            img.load()
            return img.convert("RGBA")
    except (OSError, ValueError) as exc:
        raise ImageDecodeError(source, str(exc)) from exc


# ---------------------------------------------------------------------------
# Shape geometry
# ---------------------------------------------------------------------------

def composite_geometry(target_code_size_px: float, logo_size_percent: float, padding: float) -> tuple[float, int]:
    """Return ``(logo_px, canvas_side)`` for a composite.

    ``logo_px = target × percent / 100`` and the square canvas side is
    ``logo_px + 2 × padding``, truncated to whole pixels.
    """
    logo_px = target_code_size_px * (logo_size_percent / 100)
    return logo_px, int(logo_px + 2 * padding)


def shape_mask(shape: str, side: int, logo_px: float, padding: float, supersample: int = 4) -> Image.Image:
    """Coverage mask (mode ``L``) of the background shape on a ``side x side`` canvas.

    The shape always contains the centred ``logo_px`` square: the circle and
    the diamond grow past their nominal size (clipped by the canvas) when
    the nominal shape would cut the logo's corners.
    """
    s = max(1, supersample)
    big = Image.new("L", (side * s, side * s), 0)
    draw = ImageDraw.Draw(big)
    c = side * s / 2
    nominal = logo_px / 2 + padding

    if shape == LogoShape.SQUARE.value:
        draw.rectangle([0, 0, side * s - 1, side * s - 1], fill=255)
    elif shape == LogoShape.ROUNDED.value:
        # corners must not reach into the logo box: a corner of radius r cuts
        # r·(1 - 1/√2) deep along the diagonal
        corner = min(ROUNDED_CORNER_RATIO * nominal, padding / (1 - 1 / math.sqrt(2)))
        if corner > 0:
            draw.rounded_rectangle([0, 0, side * s - 1, side * s - 1], radius=corner * s, fill=255)
        else:
            draw.rectangle([0, 0, side * s - 1, side * s - 1], fill=255)
    elif shape == LogoShape.DIAMOND.value:
        half = max(side / 2, logo_px + CONTAINMENT_SLACK) * s
        draw.polygon([(c, c - half), (c + half, c), (c, c + half), (c - half, c)], fill=255)
    else:  # circle, and any unknown shape
        radius = max(nominal, logo_px * math.sqrt(2) / 2 + CONTAINMENT_SLACK) * s
        draw.ellipse([c - radius, c - radius, c + radius, c + radius], fill=255)

    if s == 1:
        return big
    return big.resize((side, side), Image.BOX)


# ---------------------------------------------------------------------------
# Compositor
# ---------------------------------------------------------------------------

class LogoCompositor:
    """Builds CompositeLogo images; decoding and raster work run off the event loop."""

    def __init__(self, supersample: int = 4, decode_timeout: float | None = None) -> None:
        self.supersample = supersample
        self.decode_timeout = decode_timeout

    async def load(self, source) -> Image.Image:
        """Decode *source* in a worker thread; raises ImageDecodeError."""
        job = asyncio.to_thread(load_image, source)
        if self.decode_timeout is None:
            return await job
        try:
            return await asyncio.wait_for(job, self.decode_timeout)
        except asyncio.TimeoutError as exc:
            raise ImageDecodeError(source, f"decode timed out after {self.decode_timeout}s") from exc

    @trace
    async def composite(
        self,
        logo,
        bg: LogoBackgroundSpec,
        target_code_size_px: float,
        logo_size_percent: float,
    ) -> CompositeLogo:
        """Flatten *logo* onto the background shape described by *bg*.

        The output is square, the logo is centred at exactly ``logo_px``
        pixels, and the shape covers the logo box plus padding.
        """
        image = await self.load(logo)
        return await asyncio.to_thread(
            self.flatten, image, bg, target_code_size_px, logo_size_percent,
        )

    def flatten(
        self,
        image: Image.Image,
        bg: LogoBackgroundSpec,
        target_code_size_px: float,
        logo_size_percent: float,
    ) -> CompositeLogo:
        logo_px, side = composite_geometry(target_code_size_px, logo_size_percent, bg.padding)
        if side <= 0:
            raise ImageDecodeError(image, f"composite canvas would be {side}px")

        mask = shape_mask(bg.shape, side, logo_px, bg.padding, self.supersample)
        canvas = to_raster_fill(bg.color, side, side).paint()
        canvas.putalpha(ImageChops.multiply(canvas.getchannel("A"), mask))

        logo_side = max(1, round(logo_px))
        logo = image.convert("RGBA").resize((logo_side, logo_side), Image.LANCZOS)
        offset = (side - logo_side) // 2
        canvas.alpha_composite(logo, (offset, offset))

        audit(
            "logo.composited", logger=log,
            shape=bg.shape, padding=bg.padding,
            logo_px=logo_side, canvas_px=side,
        )
        return CompositeLogo(data_url=encode_data_url(canvas), size_px=side)
