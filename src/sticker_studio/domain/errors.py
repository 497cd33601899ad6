"""Error taxonomy for sticker generation and session storage."""


class StickerStudioError(Exception):
    """Base error for the application."""


class ConfigurationError(StickerStudioError):
    """Raised when a batch cannot be started or the app is misconfigured."""


class BackendCallFailure(StickerStudioError):
    """Raised by an image generation client when a single call fails."""


class StoreConnectionFailure(StickerStudioError):
    """Raised when the session store backend cannot be reached."""


class NotFoundError(StickerStudioError):
    """Raised when a session is absent or expired."""
