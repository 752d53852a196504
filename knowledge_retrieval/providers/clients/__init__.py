"""HTTP clients for external model providers."""

from .anthropic import AnthropicSelectionClient, build_selection_prompt
from .base import (
    BaseHttpClient,
    ClientError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    RequestRejectedError,
    UnauthorizedError,
    UpstreamError,
)

__all__ = [
    "AnthropicSelectionClient",
    "BaseHttpClient",
    "ClientError",
    "ForbiddenError",
    "NotFoundError",
    "RateLimitedError",
    "RequestRejectedError",
    "UnauthorizedError",
    "UpstreamError",
    "build_selection_prompt",
]
