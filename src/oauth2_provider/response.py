"""Wire-level rendering of protocol problems.

The transport layer owns the actual HTTP response; this module defines the
writer contract the provider hands problems to, plus a default writer that
renders a framework-neutral :class:`ProblemResponse`.
"""

from __future__ import annotations

from typing import Any, Protocol
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field

from .errors import ErrorCode, OAuth2ProblemError


class ResponseWriter(Protocol):
    """Transport-layer contract for writing error responses."""

    def __call__(
        self,
        problem: OAuth2ProblemError,
        realm: str | None,
        send_body_in_json: bool,
        with_auth_header: bool,
    ) -> Any: ...


class ErrorBody(BaseModel):
    """OAuth2 error response parameters (RFC 6749 section 5.2)."""

    model_config = ConfigDict(frozen=True)

    error: str
    error_description: str | None = None
    error_uri: str | None = None
    state: str | None = None


class ProblemResponse(BaseModel):
    """Rendered error response, ready to be copied onto the wire."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    media_type: str
    body: str
    headers: dict[str, str] = Field(default_factory=dict)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def build_www_authenticate(problem: OAuth2ProblemError, realm: str | None) -> str:
    """Build a ``WWW-Authenticate`` challenge for a problem.

    Args:
        problem: Problem to describe.
        realm: Protection realm, omitted when None.

    Returns:
        Header value using the Bearer scheme.
    """
    params: list[str] = []
    if realm is not None:
        params.append(f"realm={_quote(realm)}")
    params.append(f"error={_quote(problem.code)}")
    if problem.message:
        params.append(f"error_description={_quote(problem.message)}")
    return "Bearer " + ", ".join(params)


class ProblemResponseWriter:
    """Default writer producing :class:`ProblemResponse` objects."""

    def __call__(
        self,
        problem: OAuth2ProblemError,
        realm: str | None,
        send_body_in_json: bool,
        with_auth_header: bool,
    ) -> ProblemResponse:
        body = ErrorBody(
            error=problem.code,
            error_description=problem.message or None,
            state=problem.state,
        )
        headers = {"Cache-Control": "no-store", "Pragma": "no-cache"}
        status_code = problem.status_code

        if with_auth_header:
            headers["WWW-Authenticate"] = build_www_authenticate(problem, realm)
        elif problem.code == ErrorCode.INVALID_CLIENT:
            # 401 requires a challenge; without one the answer is a plain 400
            status_code = 400

        if send_body_in_json:
            media_type = "application/json"
            payload = body.model_dump_json(exclude_none=True)
        else:
            media_type = "application/x-www-form-urlencoded"
            payload = urlencode(body.model_dump(exclude_none=True))

        return ProblemResponse(
            status_code=status_code,
            media_type=media_type,
            body=payload,
            headers=headers,
        )
