from __future__ import annotations


class TangenError(RuntimeError):
    """Base class for errors raised inside the recommendation pipeline."""


class ProviderError(TangenError):
    """Raised when an upstream provider call fails or returns a malformed payload."""


class AuthenticationError(ProviderError):
    """Raised when a provider session token cannot be acquired."""
