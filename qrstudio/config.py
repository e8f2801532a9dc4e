"""Engine settings: render defaults, renderer knobs and logging options."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace

ENV_PREFIX = "QRSTUDIO_"

OUTPUT_TYPES = ("canvas", "svg")
ECC_LEVELS = ("L", "M", "Q", "H")


@dataclass(frozen=True)
class RenderSettings:
    size: int = 300
    output_type: str = "canvas"
    error_correction: str = "M"
    quiet_zone: int = 2
    image_margin: int = 4
    hide_background_dots: bool = True
    supersample: int = 4
    decode_timeout: float | None = None
    log_level: str = "INFO"
    log_file: str | None = None
    json_logs: bool = False

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "RenderSettings":
        """Build settings from ``QRSTUDIO_*`` variables, e.g. ``QRSTUDIO_SIZE=512``."""
        env = os.environ if environ is None else environ
        raw = {}
        for f in fields(cls):
            value = env.get(ENV_PREFIX + f.name.upper())
            if value is not None:
                raw[f.name] = value
        return cls().merge(**raw)

    def merge(self, **overrides) -> "RenderSettings":
        """Return a copy with *overrides* applied; ``None`` values are ignored."""
        coerced = {}
        for f in fields(self):
            if f.name not in overrides or overrides[f.name] is None:
                continue
            coerced[f.name] = _coerce(f.name, overrides[f.name], getattr(self, f.name))
        return _normalize(replace(self, **coerced))


def _coerce(name: str, value, current):
    if not isinstance(value, str):
        return value
    if isinstance(current, bool):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        return int(value)
    if name == "decode_timeout":
        return float(value) if value.strip() else None
    return value


def _normalize(settings: RenderSettings) -> RenderSettings:
    output_type = settings.output_type.lower()
    ecc = settings.error_correction.upper()
    timeout = settings.decode_timeout
    return replace(
        settings,
        size=max(16, min(4096, int(settings.size))),
        output_type=output_type if output_type in OUTPUT_TYPES else "canvas",
        error_correction=ecc if ecc in ECC_LEVELS else "M",
        quiet_zone=max(0, int(settings.quiet_zone)),
        image_margin=max(0, int(settings.image_margin)),
        supersample=max(1, min(8, int(settings.supersample))),
        decode_timeout=float(timeout) if timeout and float(timeout) > 0 else None,
        log_level=settings.log_level.upper(),
    )


DEFAULT_SETTINGS = RenderSettings()
