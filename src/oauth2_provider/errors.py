"""Error classes for the OAuth2 provider core.

Implements a structured error hierarchy carrying the OAuth2 protocol error
code (RFC 6749 section 5.2), a finer-grained problem name and the HTTP
status the transport layer should answer with.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """OAuth2 protocol error codes understood by conforming clients."""

    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    INVALID_SCOPE = "invalid_scope"
    SERVER_ERROR = "server_error"


class Problem(StrEnum):
    """Provider-specific problem names, finer than the protocol error code."""

    CLIENT_ID_UNKNOWN = "client_id_unknown"
    CLIENT_SECRET_INVALID = "client_secret_invalid"
    PARAMETER_ABSENT = "parameter_absent"
    INVALID_CODE = "invalid_code"
    INVALID_TOKEN = "invalid_token"
    CONFIGURATION_ERROR = "configuration_error"
    INTERNAL_ERROR = "internal_error"


class OAuth2ProviderError(Exception):
    """Base error for the provider with structured error information."""

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        problem: Problem | str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if isinstance(code, str) else code.value
        self.problem = problem if isinstance(problem, str) else problem.value
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error": self.code,
            "problem": self.problem,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(code={self.code!r}, "
            f"problem={self.problem!r}, message={self.message!r})"
        )


class ConfigurationError(OAuth2ProviderError):
    """Client configuration source is missing, unreadable or malformed."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
    ) -> None:
        super().__init__(
            message,
            ErrorCode.SERVER_ERROR,
            problem=Problem.CONFIGURATION_ERROR,
            status_code=500,
            details={"source": source} if source else None,
        )
        self.source = source


class UnknownClientError(OAuth2ProviderError):
    """The client_id of a request does not match a registered client."""

    def __init__(
        self,
        client_id: str | None,
        message: str = "The client_id is not registered",
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CLIENT,
            problem=Problem.CLIENT_ID_UNKNOWN,
            status_code=401,
            details={"client_id": client_id},
        )
        self.client_id = client_id


class ClientAuthenticationError(OAuth2ProviderError):
    """Client credentials presented with a request do not match."""

    def __init__(
        self,
        client_id: str,
        message: str = "Client authentication failed",
    ) -> None:
        super().__init__(
            message,
            ErrorCode.INVALID_CLIENT,
            problem=Problem.CLIENT_SECRET_INVALID,
            status_code=401,
            details={"client_id": client_id},
        )
        self.client_id = client_id


class MissingParameterError(OAuth2ProviderError):
    """A parameter required by the operation is absent from the request."""

    def __init__(self, parameter: str) -> None:
        super().__init__(
            f"Missing required parameter: {parameter}",
            ErrorCode.INVALID_REQUEST,
            problem=Problem.PARAMETER_ABSENT,
            status_code=400,
            details={"oauth2_parameters_absent": parameter},
        )
        self.parameter = parameter


class InvalidGrantError(OAuth2ProviderError):
    """A code or refresh token does not resolve to a live grant."""

    _KINDS = frozenset({Problem.INVALID_CODE, Problem.INVALID_TOKEN})

    def __init__(
        self,
        kind: Problem,
        message: str | None = None,
    ) -> None:
        if kind not in self._KINDS:
            msg = f"Unsupported invalid_grant kind: {kind}"
            raise ValueError(msg)
        if message is None:
            message = (
                "Authorization code is invalid or already used"
                if kind == Problem.INVALID_CODE
                else "Token is invalid or has been replaced"
            )
        super().__init__(
            message,
            ErrorCode.INVALID_GRANT,
            problem=kind,
            status_code=400,
        )
        self.kind = Problem(kind)


class OAuth2ProblemError(OAuth2ProviderError):
    """Protocol-level problem handed to the transport layer.

    Carries the protocol error code of the failure it was built from and,
    when the inbound message had one, its ``state`` parameter unchanged.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode | str,
        *,
        problem: Problem | str,
        status_code: int = 400,
        state: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message,
            code,
            problem=problem,
            status_code=status_code,
            details=details,
        )
        self.state = state

    @property
    def parameters(self) -> dict[str, str]:
        """Protocol parameters of the error response."""
        params = {"error": self.code}
        if self.message:
            params["error_description"] = self.message
        if self.state is not None:
            params["state"] = self.state
        return params

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["state"] = self.state
        return data
