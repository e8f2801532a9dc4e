"""Render orchestrator: runs one pass per trigger, last trigger wins.

A pass goes Idle -> Compositing -> Mapping -> Rendering -> Normalizing ->
Overlaying -> Done. Awaits only happen while Compositing (logo and
background decode) and Rendering (async renderers await directly, sync ones
run in a worker thread), so those are the only states a superseded pass can
be Cancelled from. A pass that hits ``RendererUnavailable`` ends Failed and
leaves the previous output alone.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum

from qrstudio.compositor import LogoCompositor
from qrstudio.config import DEFAULT_SETTINGS, RenderSettings
from qrstudio.container import BackgroundLayer, RenderContainer
from qrstudio.errors import ImageDecodeError, QRStudioError
from qrstudio.frame import overlay
from qrstudio.logging import audit, get_logger
from qrstudio.mapper import to_renderer_options
from qrstudio.models import StyleConfig
from qrstudio.normalizer import normalize
from qrstudio.renderer import QRCodeRenderer, RenderedNode, Renderer

log = get_logger("orchestrator")


class PassState(str, Enum):
    IDLE = "idle"
    COMPOSITING = "compositing"
    MAPPING = "mapping"
    RENDERING = "rendering"
    NORMALIZING = "normalizing"
    OVERLAYING = "overlaying"
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_STATES = (PassState.DONE, PassState.CANCELLED, PassState.FAILED)


@dataclass
class RenderPass:
    pass_id: int
    data: str
    style: StyleConfig
    size: int
    state: PassState = PassState.IDLE
    error: Exception | None = None
    options: dict | None = None
    history: list[PassState] = field(default_factory=list)

    def advance(self, state: PassState) -> None:
        self.state = state
        self.history.append(state)

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES


class _Superseded(Exception):
    """A newer pass has started; unwind without touching the container."""


class RenderOrchestrator:
    """Owns the container and the pass generation counter."""

    def __init__(
        self,
        container: RenderContainer | None = None,
        renderer: Renderer | None = None,
        compositor: LogoCompositor | None = None,
        settings: RenderSettings | None = None,
    ) -> None:
        self.settings = settings or DEFAULT_SETTINGS
        self.container = container if container is not None else RenderContainer()
        self.renderer = renderer if renderer is not None else QRCodeRenderer()
        self.compositor = compositor or LogoCompositor(
            supersample=self.settings.supersample,
            decode_timeout=self.settings.decode_timeout,
        )
        self.generation = 0
        self.committed: RenderPass | None = None
        self._task: asyncio.Task | None = None

    # -- triggers ------------------------------------------------------------

    def trigger(self, data: str, style: StyleConfig, size: int | None = None) -> asyncio.Task:
        """Start a pass for ``(data, style)``; any in-flight pass becomes stale.

        Must be called from a running event loop.
        """
        self.generation += 1
        render_pass = RenderPass(
            pass_id=self.generation, data=data, style=style,
            size=size or self.settings.size,
        )
        render_pass.advance(PassState.IDLE)
        self._task = asyncio.get_running_loop().create_task(self._run(render_pass))
        return self._task

    async def render(self, data: str, style: StyleConfig, size: int | None = None) -> RenderPass:
        return await self.trigger(data, style, size)

    async def wait(self) -> RenderPass | None:
        """Await the most recently triggered pass, following re-triggers."""
        while self._task is not None:
            task = self._task
            result = await task
            if task is self._task:
                return result
        return None

    # -- pass ----------------------------------------------------------------

    def _check(self, render_pass: RenderPass) -> None:
        if render_pass.pass_id != self.generation:
            raise _Superseded()

    async def _run(self, p: RenderPass) -> RenderPass:
        audit("pass.started", logger=log, pass_id=p.pass_id, size=p.size, logo=p.style.has_logo)
        try:
            p.advance(PassState.COMPOSITING)
            image_ref, image_px = await self._composite_logo(p)
            self._check(p)
            background_layer = await self._background_layer(p)
            self._check(p)

            p.advance(PassState.MAPPING)
            p.options = to_renderer_options(
                p.style, p.data, p.size,
                image=image_ref, image_size_px=image_px, settings=self.settings,
            )

            p.advance(PassState.RENDERING)
            if inspect.iscoroutinefunction(self.renderer.render):
                node = await self.renderer.render(p.options)
            else:
                node = await asyncio.to_thread(self.renderer.render, p.options)
            if inspect.isawaitable(node):
                node = await node
            self._check(p)

            p.advance(PassState.NORMALIZING)
            normalize(node, p.style.background)

            p.advance(PassState.OVERLAYING)
            self._commit(p, node, background_layer)

        except _Superseded:
            p.advance(PassState.CANCELLED)
            audit("pass.cancelled", logger=log, pass_id=p.pass_id,
                  at=p.history[-2].value, newest=self.generation)
            return p
        except asyncio.CancelledError:
            p.advance(PassState.CANCELLED)
            raise
        except QRStudioError as exc:
            p.error = exc
            failed_at = p.state.value
            p.advance(PassState.FAILED)
            log.error("Pass %d failed while %s: %s", p.pass_id, failed_at, exc)
            audit("pass.failed", logger=log, pass_id=p.pass_id, at=failed_at, error=type(exc).__name__)
            return p

        p.advance(PassState.DONE)
        self.committed = p
        audit("pass.done", logger=log, pass_id=p.pass_id, type=p.options["type"])
        return p

    def _commit(self, p: RenderPass, node: RenderedNode, background_layer: BackgroundLayer | None) -> None:
        """Swap the new visual into the container; synchronous, so no pass can interleave."""
        self._check(p)
        self.container.clear()
        self._check(p)
        self.container.append(node)
        self.container.background_layer = background_layer
        self._check(p)
        overlay(self.container, p.style.frame)

    async def _composite_logo(self, p: RenderPass) -> tuple[str | None, int | None]:
        """Composite data URL and side, or ``(None, None)`` to embed the raw logo."""
        style = p.style
        if not style.has_logo or style.logo_background is None:
            return None, None
        try:
            composite = await self.compositor.composite(
                style.logo, style.logo_background, p.size, style.logo_size_percent,
            )
        except QRStudioError as exc:
            audit("logo.composite_failed", logger=log, pass_id=p.pass_id,
                  reason=getattr(exc, "reason", str(exc)))
            log.warning("Logo composite failed, using the plain logo: %s", exc)
            return None, None
        return composite.data_url, composite.size_px

    async def _background_layer(self, p: RenderPass) -> BackgroundLayer | None:
        style = p.style
        fill = style.background.color if style.background is not None and style.background.is_gradient else None
        image = None
        if style.background_image:
            try:
                image = await self.compositor.load(style.background_image)
            except ImageDecodeError as exc:
                log.warning("Background image omitted: %s", exc)
        if fill is None and image is None:
            return None
        return BackgroundLayer(fill=fill, image=image)
