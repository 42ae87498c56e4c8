"""OAuth2 authorization-code provider core."""

from .config import ProviderSettings, TelemetryConfig, TokenConfig, get_settings
from .errors import (
    ClientAuthenticationError,
    ConfigurationError,
    ErrorCode,
    InvalidGrantError,
    MissingParameterError,
    OAuth2ProblemError,
    OAuth2ProviderError,
    Problem,
    UnknownClientError,
)
from .models import Accessor, Client, GrantState, OAuth2Message
from .provider import OAuth2Provider
from .registry import ClientRegistry
from .response import ProblemResponse, ProblemResponseWriter, ResponseWriter
from .store import AccessorStore
from .tokens import TokenGenerator, new_identifier

__all__ = [
    "Accessor",
    "AccessorStore",
    "Client",
    "ClientAuthenticationError",
    "ClientRegistry",
    "ConfigurationError",
    "ErrorCode",
    "GrantState",
    "InvalidGrantError",
    "MissingParameterError",
    "OAuth2Message",
    "OAuth2ProblemError",
    "OAuth2Provider",
    "OAuth2ProviderError",
    "Problem",
    "ProblemResponse",
    "ProblemResponseWriter",
    "ProviderSettings",
    "ResponseWriter",
    "TelemetryConfig",
    "TokenConfig",
    "TokenGenerator",
    "UnknownClientError",
    "get_settings",
    "new_identifier",
]

__version__ = "0.1.0"
