"""Custom exceptions for asset loading and rendering operations."""


class AssetLoadError(Exception):
    """Raised when an optional asset (music bed, logo image) cannot be loaded."""


class RenderError(Exception):
    """Raised when rendering fails in the rendering pipeline."""


class ResourceUnavailableError(RenderError):
    """Raised when the drawing surface or the audio sink cannot be allocated."""


class SceneLoadError(RenderError):
    """Raised when a scene's video source cannot be opened or played."""


class EncodingError(RenderError):
    """Raised when the encoder cannot start, accept frames or finalize."""


class RecordingStateError(EncodingError):
    """Raised on an illegal recording session state transition."""


class RenderCancelledError(RenderError):
    """Raised when a render observes a cancellation request."""


class RenderBusyError(RenderError):
    """Raised when a render is requested while another one is running."""
