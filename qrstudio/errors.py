"""QR Studio exception hierarchy."""


class QRStudioError(Exception):
    """Base class for every error raised by the engine."""


class StyleValidationError(QRStudioError, ValueError):
    """A style configuration violates one of its range invariants."""


class ImageDecodeError(QRStudioError):
    """A logo or background image could not be loaded or decoded.

    Recoverable: the orchestrator falls back to the uncomposited logo, or
    omits the background-image layer.
    """

    def __init__(self, source: object, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"cannot decode image {_describe(source)}: {reason}")


class RendererUnavailable(QRStudioError):
    """The renderer could not acquire a drawing surface for this pass.

    Fatal for the current pass only; the previously committed output stays.
    """


def _describe(source: object) -> str:
    if isinstance(source, str):
        return repr(source[:40] + "...") if len(source) > 40 else repr(source)
    if isinstance(source, (bytes, bytearray)):
        return f"<{len(source)} bytes>"
    return f"<{type(source).__name__}>"
