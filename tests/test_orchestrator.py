from __future__ import annotations

import asyncio
import threading

from PIL import Image

from qrstudio.compositor import LogoCompositor
from qrstudio.errors import ImageDecodeError, RendererUnavailable
from qrstudio.models import ColorOrGradient, CompositeLogo, FrameSpec, LogoBackgroundSpec, StyleConfig
from qrstudio.orchestrator import PassState, RenderOrchestrator
from qrstudio.renderer import CanvasNode, QRCodeRenderer


class RecordingRenderer:
    """Returns a blank canvas tagged with the payload it rendered."""

    def __init__(self, fail_on: str | None = None):
        self.calls: list[dict] = []
        self.fail_on = fail_on

    def render(self, options: dict) -> CanvasNode:
        self.calls.append(options)
        if options["data"] == self.fail_on:
            raise RendererUnavailable("no drawing surface")
        size = options["width"]
        return CanvasNode(
            width=size, height=size,
            foreground=Image.new("RGBA", (size, size), (0, 0, 0, 0)),
            attrs={"data": options["data"]},
        )


class GatedAsyncRenderer(RecordingRenderer):
    """Async renderer that blocks payloads listed in ``gated`` until released."""

    def __init__(self, gated: str):
        super().__init__()
        self.gated = gated
        self.gate = asyncio.Event()

    async def render(self, options: dict) -> CanvasNode:
        if options["data"] == self.gated:
            await self.gate.wait()
        return super().render(options)


class GatedCompositor(LogoCompositor):
    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def composite(self, logo, bg, target_code_size_px, logo_size_percent) -> CompositeLogo:
        await self.gate.wait()
        return CompositeLogo(data_url="data:image/png;base64,stale", size_px=80)


class FailingCompositor(LogoCompositor):
    async def composite(self, logo, bg, target_code_size_px, logo_size_percent) -> CompositeLogo:
        raise ImageDecodeError(logo, "truncated file")


LOGO_STYLE = StyleConfig(logo="logo.png", logo_background=LogoBackgroundSpec())


def test_full_pass_with_bundled_renderer() -> None:
    orchestrator = RenderOrchestrator()
    result = asyncio.run(orchestrator.render("https://example.com", StyleConfig(), size=200))

    assert result.state is PassState.DONE
    assert result.history == [
        PassState.IDLE, PassState.COMPOSITING, PassState.MAPPING, PassState.RENDERING,
        PassState.NORMALIZING, PassState.OVERLAYING, PassState.DONE,
    ]
    assert orchestrator.committed is result
    assert orchestrator.container.to_image().size == (200, 200)


def test_gradient_background_moves_to_container_layer() -> None:
    gradient = "linear-gradient(to right, #ff0000 0%, #0000ff 100%)"
    orchestrator = RenderOrchestrator()
    asyncio.run(orchestrator.render("x", StyleConfig(background=ColorOrGradient(gradient)), size=120))

    container = orchestrator.container
    assert container.node.background == "transparent"
    assert container.background_layer.fill == gradient
    image = container.to_image()
    assert image.getpixel((1, 60))[0] > image.getpixel((118, 60))[0]


def test_frame_is_overlaid() -> None:
    orchestrator = RenderOrchestrator(renderer=RecordingRenderer())
    style = StyleConfig(frame=FrameSpec(enabled=True, thickness_px=10))
    asyncio.run(orchestrator.render("x", style, size=100))
    assert orchestrator.container.size == (120, 120)


def test_last_trigger_wins_over_late_logo_decode() -> None:
    renderer = RecordingRenderer()
    compositor = GatedCompositor()

    async def scenario():
        orchestrator = RenderOrchestrator(renderer=renderer, compositor=compositor)
        first = orchestrator.trigger("first", LOGO_STYLE, 100)
        await asyncio.sleep(0)
        second = orchestrator.trigger("second", StyleConfig(), 100)
        p2 = await second
        revision = orchestrator.container.revision

        compositor.gate.set()
        p1 = await first
        return orchestrator, p1, p2, revision

    orchestrator, p1, p2, revision = asyncio.run(scenario())
    assert p2.state is PassState.DONE
    assert p1.state is PassState.CANCELLED
    assert p1.history[-2] is PassState.COMPOSITING
    assert [c["data"] for c in renderer.calls] == ["second"]
    assert orchestrator.container.node.attrs["data"] == "second"
    assert orchestrator.container.revision == revision
    assert orchestrator.committed is p2


def test_stale_pass_cancelled_while_rendering() -> None:
    renderer = GatedAsyncRenderer(gated="first")

    async def scenario():
        orchestrator = RenderOrchestrator(renderer=renderer)
        first = orchestrator.trigger("first", StyleConfig(), 50)
        for _ in range(5):
            await asyncio.sleep(0)
        second = orchestrator.trigger("second", StyleConfig(), 50)
        await second
        renderer.gate.set()
        return orchestrator, await first

    orchestrator, p1 = asyncio.run(scenario())
    assert p1.state is PassState.CANCELLED
    assert p1.history[-2] is PassState.RENDERING
    assert orchestrator.container.node.attrs["data"] == "second"


def test_wait_follows_retriggers() -> None:
    async def scenario():
        orchestrator = RenderOrchestrator(renderer=RecordingRenderer())
        orchestrator.trigger("a", StyleConfig(), 50)
        orchestrator.trigger("b", StyleConfig(), 50)
        return await orchestrator.wait()

    result = asyncio.run(scenario())
    assert result.data == "b"
    assert result.state is PassState.DONE


def test_renderer_unavailable_keeps_previous_output() -> None:
    renderer = RecordingRenderer(fail_on="boom")

    async def scenario():
        orchestrator = RenderOrchestrator(renderer=renderer)
        good = await orchestrator.render("good", StyleConfig(), 50)
        bad = await orchestrator.render("boom", StyleConfig(), 50)
        return orchestrator, good, bad

    orchestrator, good, bad = asyncio.run(scenario())
    assert bad.state is PassState.FAILED
    assert isinstance(bad.error, RendererUnavailable)
    assert orchestrator.container.node.attrs["data"] == "good"
    assert orchestrator.committed is good


def test_composite_failure_falls_back_to_raw_logo() -> None:
    renderer = RecordingRenderer()
    orchestrator = RenderOrchestrator(renderer=renderer, compositor=FailingCompositor())
    result = asyncio.run(orchestrator.render("x", LOGO_STYLE, 300))

    assert result.state is PassState.DONE
    assert renderer.calls[0]["image"] == "logo.png"
    assert renderer.calls[0]["image_options"]["image_size"] == LOGO_STYLE.logo_size_percent / 100


def test_unpaintable_logo_background_falls_back_to_raw_logo() -> None:
    renderer = RecordingRenderer()
    logo = Image.new("RGBA", (30, 30), (255, 0, 0, 255))
    style = StyleConfig(logo=logo, logo_background=LogoBackgroundSpec(color="not-a-color"))
    result = asyncio.run(RenderOrchestrator(renderer=renderer).render("x", style, 200))

    assert result.state is PassState.DONE
    assert PassState.FAILED not in result.history
    assert renderer.calls[0]["image"] is logo


def test_composite_is_passed_to_renderer() -> None:
    renderer = RecordingRenderer()
    logo = Image.new("RGBA", (30, 30), (255, 0, 0, 255))
    style = StyleConfig(logo=logo, logo_background=LogoBackgroundSpec(shape="diamond", padding=10))
    orchestrator = RenderOrchestrator(renderer=renderer)
    asyncio.run(orchestrator.render("x", style, 300))

    options = renderer.calls[0]
    assert options["image"].startswith("data:image/png;base64,")
    assert options["image_options"]["image_size"] == 80 / 300


def test_unreadable_background_image_is_omitted() -> None:
    orchestrator = RenderOrchestrator(renderer=RecordingRenderer())
    result = asyncio.run(orchestrator.render("x", StyleConfig(background_image="/nonexistent/bg.png"), 50))
    assert result.state is PassState.DONE
    assert orchestrator.container.background_layer is None


def test_sync_renderer_runs_off_the_event_loop() -> None:
    threads: list[int] = []

    class ThreadRecordingRenderer(RecordingRenderer):
        def render(self, options: dict) -> CanvasNode:
            threads.append(threading.get_ident())
            return super().render(options)

    async def scenario():
        orchestrator = RenderOrchestrator(renderer=ThreadRecordingRenderer())
        return await orchestrator.render("x", StyleConfig(), 50), threading.get_ident()

    result, loop_thread = asyncio.run(scenario())
    assert result.state is PassState.DONE
    assert threads and threads[0] != loop_thread
