"""QR Studio CLI: preview renders, gradient CSS and the template catalogue."""

import argparse
import asyncio
import dataclasses
import json
import sys
from pathlib import Path

from qrstudio.config import RenderSettings
from qrstudio.logging import audit, get_logger, setup_logging

log = get_logger("cli")


def _build_style(args):
    from qrstudio.errors import StyleValidationError
    from qrstudio.models import (
        ColorOrGradient,
        FrameSpec,
        LogoBackgroundSpec,
        StyleConfig,
    )
    from qrstudio.templates import get_template

    if args.style:
        style = StyleConfig.from_dict(json.loads(Path(args.style).read_text()))
    elif args.template:
        template = get_template(args.template)
        if template is None:
            raise StyleValidationError(f"unknown template {args.template!r}")
        style = template.to_style()
    else:
        style = StyleConfig()

    changes = {}
    if args.fg:
        changes["foreground"] = ColorOrGradient(args.fg)
    if args.bg is not None:
        changes["background"] = ColorOrGradient(args.bg) if args.bg else None
    if args.background_image:
        changes["background_image"] = args.background_image
    for name in ("pattern", "marker", "center_dot"):
        if getattr(args, name):
            changes[name] = getattr(args, name)
    if args.logo:
        changes["logo"] = args.logo
    if args.logo_size is not None:
        changes["logo_size_percent"] = args.logo_size
    if args.logo_bg_shape:
        changes["logo_background"] = LogoBackgroundSpec(
            color=args.logo_bg_color, shape=args.logo_bg_shape, padding=args.logo_padding,
        )
    if args.frame_color:
        changes["frame"] = FrameSpec(
            enabled=True, color=args.frame_color,
            thickness_px=args.frame_thickness, corner_radius_px=args.frame_radius,
        )
    return dataclasses.replace(style, **changes) if changes else style


def cmd_render(args, settings: RenderSettings):
    """Render a styled code to PNG or SVG."""
    from qrstudio.orchestrator import PassState, RenderOrchestrator

    output = Path(args.output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output_type = "svg" if output.suffix.lower() == ".svg" else settings.output_type
    settings = settings.merge(output_type=output_type, size=args.size, error_correction=args.ecc)

    style = _build_style(args)
    orchestrator = RenderOrchestrator(settings=settings)
    result = asyncio.run(orchestrator.render(args.data, style))
    if result.state is PassState.FAILED:
        print(f"Render failed: {result.error}", file=sys.stderr)
        sys.exit(1)

    container = orchestrator.container
    if output.suffix.lower() == ".svg":
        output.write_text(container.to_svg())
    else:
        container.to_image().save(output)
    width, height = container.size
    print(f"Rendered: {output} ({width}x{height}, {settings.output_type})")


def cmd_css(args, settings: RenderSettings):
    """Print the CSS expression for a gradient."""
    from qrstudio.gradient import to_css_string
    from qrstudio.models import ColorStop, GradientSpec

    colors = [c.rpartition(":") for c in args.stops]
    last = max(1, len(colors) - 1)
    stops = []
    for i, (color, sep, position) in enumerate(colors):
        if sep and color:
            stops.append(ColorStop(color, float(position)))
        else:
            stops.append(ColorStop(position, i / last * 100))
    spec = GradientSpec(type=args.type, direction=args.direction, stops=tuple(stops))
    print(to_css_string(spec))


def cmd_templates(args, settings: RenderSettings):
    """List style templates."""
    from qrstudio.templates import TEMPLATES, search_templates, templates_by_category

    if args.search:
        found = search_templates(args.search)
    elif args.category:
        found = templates_by_category(args.category)
    else:
        found = list(TEMPLATES)

    for t in found:
        print(f"  {t.id:20s} [{t.category:10s}] {t.dots_type:15s} {t.dots_color} on {t.background}  {t.description}")
    print(f"{len(found)} template(s).")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="qrstudio", description="QR Studio: styled code rendering engine")

    # Global logging flags
    parser.add_argument("-V", "--verbose", action="store_true", help="Enable DEBUG-level logging")
    parser.add_argument("--log-file", default=None, help="Write JSON logs to file")
    parser.add_argument("--json-logs", action="store_true", help="JSON console logs")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # --- render ---
    p_render = subparsers.add_parser("render", help="Render a styled code")
    p_render.add_argument("data", help="Payload to encode")
    p_render.add_argument("-o", "--output", default="output/qr.png", help="Output file (.png or .svg)")
    p_render.add_argument("-s", "--size", type=int, default=None, help="Code size in pixels")
    p_render.add_argument("-e", "--ecc", default=None, choices=["L", "M", "Q", "H"], help="Error correction level")
    p_render.add_argument("--style", default=None, help="JSON style payload (form layer format)")
    p_render.add_argument("-t", "--template", default=None, help="Start from a template id")
    p_render.add_argument("--fg", default=None, help="Foreground color or CSS gradient")
    p_render.add_argument("--bg", default=None, help="Background color or CSS gradient ('' for none)")
    p_render.add_argument("--background-image", default=None, help="Image painted beneath the code")
    p_render.add_argument("--pattern", default=None, help="Dot pattern")
    p_render.add_argument("--marker", default=None, help="Positional marker style")
    p_render.add_argument("--center-dot", default=None, help="Marker center style")
    p_render.add_argument("--logo", default=None, help="Logo image path")
    p_render.add_argument("--logo-size", type=float, default=None, help="Logo size percent (10-50)")
    p_render.add_argument("--logo-bg-shape", default=None, choices=["circle", "square", "rounded", "diamond"],
                          help="Flatten the logo onto a background shape")
    p_render.add_argument("--logo-bg-color", default="#ffffff", help="Logo background color")
    p_render.add_argument("--logo-padding", type=float, default=10, help="Logo background padding (px)")
    p_render.add_argument("--frame-color", default=None, help="Draw a frame in this color")
    p_render.add_argument("--frame-thickness", type=int, default=4, help="Frame thickness (px)")
    p_render.add_argument("--frame-radius", type=int, default=0, help="Frame corner radius (px)")

    # --- css ---
    p_css = subparsers.add_parser("css", help="Print a gradient's CSS expression")
    p_css.add_argument("stops", nargs="+", help="Stops as COLOR or COLOR:POSITION")
    p_css.add_argument("--type", default="linear", choices=["linear", "radial", "conic"])
    p_css.add_argument("--direction", default="to right", help="Direction, e.g. 'to bottom right' or '45deg'")

    # --- templates ---
    p_tpl = subparsers.add_parser("templates", help="List style templates")
    p_tpl.add_argument("--category", default=None, help="Only this category")
    p_tpl.add_argument("--search", default=None, help="Match name, description or tags")

    args = parser.parse_args(argv)

    settings = RenderSettings.from_env()
    if args.verbose:
        settings = settings.merge(log_level="DEBUG")
    settings = settings.merge(log_file=args.log_file, json_logs=args.json_logs or None)

    # Setup logging before any command runs
    setup_logging(level=settings.log_level, log_file=settings.log_file, json_format=settings.json_logs)
    audit("cli.start", logger=log, command=args.command, verbose=args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    commands = {
        "render": cmd_render,
        "css": cmd_css,
        "templates": cmd_templates,
    }
    commands[args.command](args, settings)
    audit("cli.done", logger=log, command=args.command)


if __name__ == "__main__":
    main()
