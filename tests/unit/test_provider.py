"""Unit tests for the provider facade."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from oauth2_provider.config import ProviderSettings, TelemetryConfig
from oauth2_provider.errors import ConfigurationError, OAuth2ProblemError
from oauth2_provider.models import Accessor, Client, OAuth2Message
from oauth2_provider.provider import OAuth2Provider
from oauth2_provider.response import ProblemResponse


class TestClientResolution:
    """Tests for get_client and authenticate_client."""

    def test_get_client(self, provider: OAuth2Provider) -> None:
        """Should resolve a registered client."""
        client = provider.get_client(OAuth2Message(client_id="abc"))

        assert client.client_id == "abc"

    def test_unknown_client_echoes_state(self, provider: OAuth2Provider) -> None:
        """Should raise invalid_client carrying the state."""
        message = OAuth2Message(client_id="nobody", state="st-1")

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_client(message)

        problem = exc_info.value
        assert problem.code == "invalid_client"
        assert problem.problem == "client_id_unknown"
        assert problem.state == "st-1"

    def test_unknown_client_without_state(self, provider: OAuth2Provider) -> None:
        """Should leave state out when the message has none."""
        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_client(OAuth2Message(client_id="nobody"))

        assert exc_info.value.state is None
        assert "state" not in exc_info.value.parameters

    def test_authenticate_client(self, provider: OAuth2Provider) -> None:
        """Should accept the configured secret."""
        message = OAuth2Message(client_id="abc", client_secret="xyz")

        assert provider.authenticate_client(message).client_id == "abc"

    @pytest.mark.parametrize("secret", ["wrong", None])
    def test_authenticate_client_bad_secret(
        self, provider: OAuth2Provider, secret: str | None
    ) -> None:
        """Should reject wrong or missing secrets."""
        message = OAuth2Message(client_id="abc", client_secret=secret, state="s")

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.authenticate_client(message)

        assert exc_info.value.code == "invalid_client"
        assert exc_info.value.problem == "client_secret_invalid"
        assert exc_info.value.state == "s"


class TestGrantLifecycle:
    """End-to-end grant scenarios through the facade."""

    def test_full_scenario(self, provider: OAuth2Provider, token_message) -> None:
        """Should walk a grant from code to refreshed tokens."""
        client = provider.get_client(OAuth2Message(client_id="abc"))
        accessor = provider.generate_code(client)
        c1 = accessor.code

        provider.mark_as_authorized(accessor, "user42")
        provider.generate_access_and_refresh_token(accessor)
        t1, r1 = accessor.access_token, accessor.refresh_token

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_accessor_by_code(token_message(code=c1))
        assert exc_info.value.code == "invalid_grant"
        assert exc_info.value.problem == "invalid_code"

        assert provider.get_accessor_by_refresh_token(
            token_message(refresh_token=r1)
        ) is accessor

        provider.refresh(accessor)
        t2, r2 = accessor.access_token, accessor.refresh_token
        assert t2 != t1
        assert r2 != r1

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_accessor_by_refresh_token(token_message(refresh_token=r1))
        assert exc_info.value.problem == "invalid_token"

        assert provider.get_accessor_by_refresh_token(
            token_message(refresh_token=r2)
        ) is accessor
        assert provider.get_accessor_by_access_token(t2) is accessor

    def test_missing_code_is_missing_parameter(
        self, provider: OAuth2Provider, token_message
    ) -> None:
        """Should report an absent code as invalid_request."""
        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_accessor_by_code(token_message(state="s-9"))

        problem = exc_info.value
        assert problem.code == "invalid_request"
        assert problem.problem == "parameter_absent"
        assert problem.state == "s-9"

    def test_missing_refresh_token_is_missing_parameter(
        self, provider: OAuth2Provider, token_message
    ) -> None:
        """Should report an absent refresh token as invalid_request."""
        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_accessor_by_refresh_token(token_message())

        assert exc_info.value.problem == "parameter_absent"

    def test_mark_as_authorized_after_exchange(
        self, provider: OAuth2Provider, client: Client
    ) -> None:
        """Should reject approval after the exchange."""
        accessor = provider.generate_code(client)
        provider.generate_access_and_refresh_token(accessor)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.mark_as_authorized(accessor, "user42")

        assert exc_info.value.code == "invalid_grant"

    def test_refresh_before_exchange(
        self, provider: OAuth2Provider, client: Client
    ) -> None:
        """Should reject refresh before the exchange."""
        accessor = provider.generate_code(client)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.refresh(accessor)

        assert exc_info.value.problem == "invalid_token"


class TestTokenEndpoint:
    """Tests for exchange_code and refresh_tokens."""

    def test_exchange_code(
        self, provider: OAuth2Provider, client: Client, token_message
    ) -> None:
        """Should issue tokens for the owning client."""
        accessor = provider.generate_code(client)
        provider.mark_as_authorized(accessor, "user42")

        result = provider.exchange_code(token_message(code=accessor.code))

        assert result is accessor
        assert accessor.access_token

    def test_exchange_code_twice(
        self, provider: OAuth2Provider, client: Client, token_message
    ) -> None:
        """Should reject a second exchange and echo state."""
        accessor = provider.generate_code(client)
        message = token_message(code=accessor.code, state="again")
        provider.exchange_code(message)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.exchange_code(message)

        assert exc_info.value.problem == "invalid_code"
        assert exc_info.value.state == "again"

    def test_exchange_code_of_another_client(
        self, provider: OAuth2Provider, other_client: Client, token_message
    ) -> None:
        """Should reject a code issued to another client."""
        accessor = provider.generate_code(other_client)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.exchange_code(token_message(code=accessor.code))

        assert exc_info.value.problem == "invalid_code"
        # the rightful client can still redeem it
        assert provider.store.find_by_code(accessor.code) is accessor

    def test_refresh_tokens(
        self, provider: OAuth2Provider, client: Client, token_message
    ) -> None:
        """Should rotate tokens and reject the old refresh token."""
        accessor = provider.generate_code(client)
        provider.generate_access_and_refresh_token(accessor)
        old = accessor.refresh_token

        provider.refresh_tokens(token_message(refresh_token=old))

        assert accessor.refresh_token != old
        with pytest.raises(OAuth2ProblemError):
            provider.refresh_tokens(token_message(refresh_token=old))

    def test_refresh_tokens_of_another_client(
        self, provider: OAuth2Provider, other_client: Client, token_message
    ) -> None:
        """Should reject a refresh token of another client."""
        accessor = provider.generate_code(other_client)
        provider.generate_access_and_refresh_token(accessor)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.refresh_tokens(token_message(refresh_token=accessor.refresh_token))

        assert exc_info.value.problem == "invalid_token"

    def test_refresh_token_from_generic_parameters(
        self, provider: OAuth2Provider, client: Client
    ) -> None:
        """Should find the refresh token among extra parameters."""
        accessor = provider.generate_code(client)
        provider.generate_access_and_refresh_token(accessor)
        message = OAuth2Message(
            client_id="abc",
            parameters={"refresh_token": accessor.refresh_token},
        )

        assert provider.get_accessor_by_refresh_token(message) is accessor


class TestHandleException:
    """Tests for handle_exception."""

    def test_default_writer_renders_json(self, provider: OAuth2Provider) -> None:
        """Should render a JSON problem response."""
        message = OAuth2Message(client_id="nobody", state="st")
        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.get_client(message)

        response = provider.handle_exception(exc_info.value, message)

        assert isinstance(response, ProblemResponse)
        assert response.media_type == "application/json"
        assert json.loads(response.body)["state"] == "st"

    def test_custom_writer_receives_arguments(
        self, registry, store
    ) -> None:
        """Should pass problem, realm and flags to the writer."""
        writer = MagicMock(return_value="written")
        provider = OAuth2Provider(registry, store, response_writer=writer, realm="r")
        message = OAuth2Message(client_id="abc", state="st")

        result = provider.handle_exception(
            RuntimeError("socket closed"),
            message,
            send_body_in_json=False,
            with_auth_header=True,
        )

        assert result == "written"
        problem, realm, json_flag, header_flag = writer.call_args.args
        assert problem.code == "server_error"
        assert problem.state == "st"
        assert realm == "r"
        assert json_flag is False
        assert header_flag is True

    def test_provider_defaults_for_flags(self, registry, store) -> None:
        """Should fall back to the provider defaults."""
        calls: list[tuple[Any, ...]] = []

        def writer(*args: Any) -> None:
            calls.append(args)

        provider = OAuth2Provider(
            registry,
            store,
            response_writer=writer,
            send_body_in_json=False,
            with_auth_header=True,
        )

        provider.handle_exception(ValueError("x"))

        assert calls[0][1:] == (None, False, True)

    def test_internal_failure_is_server_error(
        self, provider: OAuth2Provider, client: Client
    ) -> None:
        """Should map unexpected failures to server_error."""
        unknown = Accessor(client=client)

        with pytest.raises(OAuth2ProblemError) as exc_info:
            provider.refresh(unknown)

        assert exc_info.value.code == "server_error"
        assert isinstance(exc_info.value.__cause__, ValueError)


class TestFromSettings:
    """Tests for OAuth2Provider.from_settings."""

    def test_from_settings(self, clients_file: Path) -> None:
        """Should wire a provider from settings."""
        settings = ProviderSettings(
            clients_file=clients_file,
            realm="example",
            telemetry=TelemetryConfig(enabled=False),
        )

        provider = OAuth2Provider.from_settings(settings)

        assert provider.realm == "example"
        assert provider.registry.lookup("abc").redirect_uri == "http://cb"
        assert len(provider.store) == 0

    def test_from_settings_without_clients_file(self) -> None:
        """Should fail without a clients file."""
        settings = ProviderSettings(telemetry=TelemetryConfig(enabled=False))

        with pytest.raises(ConfigurationError):
            OAuth2Provider.from_settings(settings)
