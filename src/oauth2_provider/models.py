"""Protocol models for the OAuth2 provider.

Clients and inbound messages are frozen Pydantic models; accessors are
mutable records owned by the accessor store and compared by identity.
"""

from __future__ import annotations

import secrets
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class Client(BaseModel):
    """A registered OAuth2 client application."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(..., min_length=1)
    client_secret: SecretStr
    redirect_uri: str | None = None
    metadata: Mapping[str, str] = Field(default_factory=dict, validate_default=True)

    @field_validator("metadata")
    @classmethod
    def freeze_metadata(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        """Wrap metadata in a read-only view."""
        return MappingProxyType(dict(v))

    @property
    def name(self) -> str:
        """Display name, the client id unless configured otherwise."""
        return self.metadata.get("name", self.client_id)

    @property
    def description(self) -> str | None:
        return self.metadata.get("description")

    def verify_secret(self, secret: str | None) -> bool:
        """Check a presented secret in constant time."""
        if secret is None:
            return False
        return secrets.compare_digest(
            self.client_secret.get_secret_value().encode("utf-8"),
            secret.encode("utf-8"),
        )


class GrantState(StrEnum):
    """Lifecycle states of an authorization grant."""

    CODE_ISSUED = "code_issued"
    AUTHORIZED = "authorized"
    TOKEN_ISSUED = "token_issued"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(eq=False)
class Accessor:
    """Server-side record of one authorization grant."""

    client: Client
    code: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    user_id: str | None = None
    authorized: bool = False
    state: GrantState = GrantState.CODE_ISSUED
    refresh_count: int = 0
    properties: dict[str, Any] = field(default_factory=dict)
    accessor_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def get_property(self, name: str, default: Any = None) -> Any:
        return self.properties.get(name, default)

    def set_property(self, name: str, value: Any) -> None:
        self.properties[name] = value

    def touch(self) -> None:
        self.updated_at = _utcnow()

    def __repr__(self) -> str:
        # Token values stay out of logs and tracebacks
        return (
            f"Accessor(accessor_id={self.accessor_id!r}, "
            f"client_id={self.client.client_id!r}, state={self.state.value!r})"
        )


_MESSAGE_FIELDS = (
    "client_id",
    "client_secret",
    "code",
    "state",
    "refresh_token",
    "redirect_uri",
    "grant_type",
)


class OAuth2Message(BaseModel):
    """Inbound OAuth2 protocol message as parsed by the transport layer."""

    model_config = ConfigDict(frozen=True)

    client_id: str | None = None
    client_secret: str | None = None
    code: str | None = None
    state: str | None = None
    refresh_token: str | None = None
    redirect_uri: str | None = None
    grant_type: str | None = None
    parameters: Mapping[str, str] = Field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Mapping[str, str]) -> Self:
        """Create a message from flat request parameters.

        Empty values are treated as absent, as a form field sent without
        a value carries no information.
        """
        cleaned = {k: v for k, v in params.items() if v not in (None, "")}
        known = {name: cleaned[name] for name in _MESSAGE_FIELDS if name in cleaned}
        return cls(**known, parameters=cleaned)

    def get_parameter(self, name: str) -> str | None:
        """Look up a parameter by its wire name."""
        if name in _MESSAGE_FIELDS:
            value = getattr(self, name)
            if value is not None:
                return value
        return self.parameters.get(name)
