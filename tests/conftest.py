"""
Shared test fixtures for OAuth2 provider tests.

Provides fresh registries, stores and providers per test plus sample
client configuration.
"""

import io

import pytest
from hypothesis import settings

from oauth2_provider.config import TelemetryConfig
from oauth2_provider.core.grant import GrantStateMachine
from oauth2_provider.models import Client, OAuth2Message
from oauth2_provider.provider import OAuth2Provider
from oauth2_provider.registry import ClientRegistry
from oauth2_provider.store import AccessorStore
from oauth2_provider.tokens import TokenGenerator

settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("dev", max_examples=50, deadline=None)
settings.load_profile("dev")


SAMPLE_PROPERTIES = """\
# Registered clients
abc = xyz
abc.description = Example application
abc.callbackURL = http://cb

other: s3cret
other.callbackURL = https://other.example.com/callback
"""


@pytest.fixture
def sample_properties() -> str:
    """Provide a properties document with two clients."""
    return SAMPLE_PROPERTIES


@pytest.fixture
def clients_file(tmp_path, sample_properties: str):
    """Provide the sample configuration written to disk."""
    path = tmp_path / "provider.properties"
    path.write_text(sample_properties, encoding="utf-8")
    return path


@pytest.fixture
def registry(sample_properties: str) -> ClientRegistry:
    """Provide a loaded client registry."""
    registry = ClientRegistry()
    registry.load(io.StringIO(sample_properties))
    return registry


@pytest.fixture
def client(registry: ClientRegistry) -> Client:
    """Provide the ``abc`` sample client."""
    return registry.lookup("abc")


@pytest.fixture
def other_client(registry: ClientRegistry) -> Client:
    """Provide the ``other`` sample client."""
    return registry.lookup("other")


@pytest.fixture
def generator() -> TokenGenerator:
    """Provide a token generator."""
    return TokenGenerator()


@pytest.fixture
def store(generator: TokenGenerator) -> AccessorStore:
    """Provide an empty accessor store."""
    return AccessorStore(generator)


@pytest.fixture
def grants(store: AccessorStore, generator: TokenGenerator) -> GrantStateMachine:
    """Provide a grant state machine bound to the store."""
    return GrantStateMachine(store, generator)


@pytest.fixture
def provider(registry: ClientRegistry, store: AccessorStore) -> OAuth2Provider:
    """Provide a provider wired to fresh components."""
    return OAuth2Provider(registry, store, realm="example")


@pytest.fixture
def telemetry_config() -> TelemetryConfig:
    """Provide telemetry configuration for testing."""
    return TelemetryConfig(
        enabled=False,
        service_name="test-provider",
    )


@pytest.fixture
def token_message():
    """Build token-endpoint messages for the ``abc`` client."""

    def build(**params: str) -> OAuth2Message:
        return OAuth2Message.from_params({"client_id": "abc", **params})

    return build
