"""OAuth2 authorization-code provider facade.

The public operation set used by the transport layer. It resolves inbound
messages to clients and accessors, drives the grant lifecycle and turns
every failure into an :class:`OAuth2ProblemError` that echoes the request's
``state`` parameter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Self

from .core.errors import ProblemFactory
from .core.grant import GrantStateMachine
from .errors import (
    ClientAuthenticationError,
    InvalidGrantError,
    OAuth2ProblemError,
    Problem,
)
from .registry import ClientRegistry
from .response import ProblemResponseWriter, ResponseWriter
from .store import AccessorStore
from .telemetry import annotate_span, configure_telemetry, get_logger, traced
from .tokens import TokenGenerator

if TYPE_CHECKING:
    from .config import ProviderSettings
    from .models import Accessor, Client, OAuth2Message


class OAuth2Provider:
    """Authorization server core for the authorization code grant."""

    def __init__(
        self,
        registry: ClientRegistry,
        store: AccessorStore,
        *,
        grants: GrantStateMachine | None = None,
        generator: TokenGenerator | None = None,
        response_writer: ResponseWriter | None = None,
        realm: str | None = None,
        send_body_in_json: bool = True,
        with_auth_header: bool = False,
    ) -> None:
        """Initialize the provider.

        Args:
            registry: Loaded client registry.
            store: Accessor store owning all grants.
            grants: Lifecycle driver; built on ``store`` when omitted.
            generator: Token generator for a default state machine.
            response_writer: Transport contract used by handle_exception.
            realm: Realm announced in ``WWW-Authenticate`` challenges.
            send_body_in_json: Default body format of error responses.
            with_auth_header: Default for adding a challenge header.
        """
        self.registry = registry
        self.store = store
        self.grants = grants or GrantStateMachine(store, generator)
        self.response_writer = response_writer or ProblemResponseWriter()
        self.realm = realm
        self.send_body_in_json = send_body_in_json
        self.with_auth_header = with_auth_header
        self._logger = get_logger().bind(component="provider")

    @classmethod
    def from_settings(
        cls,
        settings: ProviderSettings,
        *,
        response_writer: ResponseWriter | None = None,
    ) -> Self:
        """Wire a provider from process settings.

        Raises:
            ConfigurationError: If the clients file cannot be loaded.
        """
        configure_telemetry(settings.telemetry)
        generator = TokenGenerator(settings.token.entropy_bytes)
        registry = ClientRegistry()
        registry.load(settings.clients_file)
        store = AccessorStore(generator)
        return cls(
            registry,
            store,
            generator=generator,
            response_writer=response_writer,
            realm=settings.realm,
            send_body_in_json=settings.send_body_in_json,
            with_auth_header=settings.with_auth_header,
        )

    # Clients

    @traced("oauth2.get_client")
    def get_client(self, message: OAuth2Message) -> Client:
        """Resolve the client named by the message's ``client_id``."""
        try:
            annotate_span(client_id=message.client_id)
            return self.registry.lookup(message.client_id)
        except Exception as e:
            raise self._problem(e, message)

    @traced("oauth2.authenticate_client")
    def authenticate_client(self, message: OAuth2Message) -> Client:
        """Resolve the client and verify the secret it presented."""
        try:
            annotate_span(client_id=message.client_id)
            client = self.registry.lookup(message.client_id)
            if not client.verify_secret(message.client_secret):
                raise ClientAuthenticationError(client.client_id)
            return client
        except Exception as e:
            raise self._problem(e, message)

    # Accessors

    @traced("oauth2.generate_code")
    def generate_code(self, client: Client) -> Accessor:
        """Start a grant for ``client`` with a fresh authorization code."""
        try:
            annotate_span(client_id=client.client_id)
            return self.store.issue_code(client)
        except Exception as e:
            raise self._problem(e)

    @traced("oauth2.get_accessor_by_code")
    def get_accessor_by_code(self, message: OAuth2Message) -> Accessor:
        try:
            annotate_span(client_id=message.client_id)
            return self.store.find_by_code(message.code)
        except Exception as e:
            raise self._problem(e, message)

    @traced("oauth2.get_accessor_by_refresh_token")
    def get_accessor_by_refresh_token(self, message: OAuth2Message) -> Accessor:
        try:
            annotate_span(client_id=message.client_id)
            return self.store.find_by_refresh_token(
                message.get_parameter("refresh_token")
            )
        except Exception as e:
            raise self._problem(e, message)

    @traced("oauth2.get_accessor_by_access_token")
    def get_accessor_by_access_token(self, access_token: str | None) -> Accessor:
        """Resolve a bearer access token presented to a resource."""
        try:
            accessor = self.store.find_by_access_token(access_token)
            self._annotate(accessor)
            return accessor
        except Exception as e:
            raise self._problem(e)

    # Grant lifecycle

    @traced("oauth2.mark_as_authorized")
    def mark_as_authorized(self, accessor: Accessor, user_id: str) -> Accessor:
        try:
            self._annotate(accessor)
            return self.grants.mark_authorized(accessor, user_id)
        except Exception as e:
            raise self._problem(e)

    @traced("oauth2.generate_access_and_refresh_token")
    def generate_access_and_refresh_token(self, accessor: Accessor) -> Accessor:
        try:
            self._annotate(accessor)
            return self.grants.issue_tokens(accessor)
        except Exception as e:
            raise self._problem(e)

    @traced("oauth2.refresh")
    def refresh(self, accessor: Accessor) -> Accessor:
        try:
            self._annotate(accessor)
            return self.grants.refresh(accessor)
        except Exception as e:
            raise self._problem(e)

    @traced("oauth2.exchange_code", grant_type="authorization_code")
    def exchange_code(self, message: OAuth2Message) -> Accessor:
        """Token endpoint, ``authorization_code`` grant.

        The code must have been issued to the client named in the message.
        """
        try:
            annotate_span(client_id=message.client_id)
            client = self.registry.lookup(message.client_id)
            accessor = self.store.find_by_code(message.code)
            annotate_span(accessor_id=accessor.accessor_id)
            if accessor.client.client_id != client.client_id:
                raise InvalidGrantError(Problem.INVALID_CODE)
            return self.grants.issue_tokens(accessor)
        except Exception as e:
            raise self._problem(e, message)

    @traced("oauth2.refresh_tokens", grant_type="refresh_token")
    def refresh_tokens(self, message: OAuth2Message) -> Accessor:
        """Token endpoint, ``refresh_token`` grant.

        The refresh token must belong to the client named in the message.
        """
        try:
            annotate_span(client_id=message.client_id)
            client = self.registry.lookup(message.client_id)
            token = message.get_parameter("refresh_token")
            accessor = self.store.find_by_refresh_token(token)
            annotate_span(accessor_id=accessor.accessor_id)
            if accessor.client.client_id != client.client_id:
                raise InvalidGrantError(Problem.INVALID_TOKEN)
            return self.grants.refresh(accessor, refresh_token=token)
        except Exception as e:
            raise self._problem(e, message)

    # Errors

    def handle_exception(
        self,
        exc: BaseException,
        message: OAuth2Message | None = None,
        *,
        send_body_in_json: bool | None = None,
        with_auth_header: bool | None = None,
    ) -> Any:
        """Hand any failure to the response writer as a protocol problem.

        Args:
            exc: Failure raised while serving the request, from this core or
                from the transport itself.
            message: Inbound message, used to echo its ``state``.
            send_body_in_json: Render the error parameters as JSON; the
                provider default when None.
            with_auth_header: Add a ``WWW-Authenticate`` challenge; the
                provider default when None.

        Returns:
            Whatever the response writer returns.
        """
        problem = ProblemFactory.for_message(exc, message)
        return self.response_writer(
            problem,
            self.realm,
            self.send_body_in_json if send_body_in_json is None else send_body_in_json,
            self.with_auth_header if with_auth_header is None else with_auth_header,
        )

    @staticmethod
    def _annotate(accessor: Accessor) -> None:
        annotate_span(
            client_id=accessor.client.client_id,
            accessor_id=accessor.accessor_id,
            grant_state=accessor.state.value,
        )

    def _problem(
        self,
        exc: BaseException,
        message: OAuth2Message | None = None,
    ) -> OAuth2ProblemError:
        problem = ProblemFactory.for_message(exc, message)
        log = self._logger.error if problem.status_code >= 500 else self._logger.info
        log("request_failed", **ProblemFactory.describe(problem))
        return problem
