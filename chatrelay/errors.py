class ChatRelayError(Exception):
    """
    Base class for errors raised by chatrelay itself.

    Vendor and transport failures are not wrapped: they surface as the
    ``openai`` SDK's own exception types.
    """


class ProviderNotConfiguredError(ChatRelayError, ValueError):
    """Raised when a provider id is unknown or lacks credentials."""


class ImageGenerationCancelled(ChatRelayError):
    """Raised when an image generation request is cancelled by its caller."""
