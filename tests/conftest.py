"""Shared test fixtures for bridgee-sdk tests."""

import sys
from pathlib import Path

# Ensure the src/ layout is importable without installing the package.
_SRC_PATH = Path(__file__).parent.parent / "src"
if str(_SRC_PATH) not in sys.path:
    sys.path.insert(0, str(_SRC_PATH))

from collections.abc import Mapping

import pytest

from bridgee_sdk.attribution import reset_instance
from bridgee_sdk.core.interfaces import IInstallReferrerStateListener, InstallReferrerResponse
from bridgee_sdk.core.models import TenantCredentials
from bridgee_sdk.settings import Settings


class FakeReferrerClient:
    """Install referrer client double that answers synchronously from start_connection()."""

    def __init__(
        self,
        response_code: int | None = InstallReferrerResponse.OK,
        referrer: str | None = "utm_source=google&utm_medium=cpc",
        disconnect: bool = False,
        start_error: Exception | None = None,
        read_error: Exception | None = None,
        release_error: Exception | None = None,
    ) -> None:
        self.response_code = response_code
        self.referrer = referrer
        self.disconnect = disconnect
        self.start_error = start_error
        self.read_error = read_error
        self.release_error = release_error
        self.listener: IInstallReferrerStateListener | None = None
        self.end_connection_calls = 0

    def start_connection(self, listener: IInstallReferrerStateListener) -> None:
        self.listener = listener
        if self.start_error is not None:
            raise self.start_error
        if self.disconnect:
            listener.on_install_referrer_service_disconnected()
        elif self.response_code is not None:
            listener.on_install_referrer_setup_finished(self.response_code)

    def get_install_referrer(self) -> str | None:
        if self.read_error is not None:
            raise self.read_error
        return self.referrer

    def end_connection(self) -> None:
        self.end_connection_calls += 1
        if self.release_error is not None:
            raise self.release_error


class FakePlatformContext:
    """Platform context double handing out a new FakeReferrerClient per call."""

    def __init__(self, online: bool = True, **client_kwargs: object) -> None:
        self.online = online
        self.client_kwargs = client_kwargs
        self.clients: list[FakeReferrerClient] = []

    def new_install_referrer_client(self) -> FakeReferrerClient:
        client = FakeReferrerClient(**self.client_kwargs)  # type: ignore[arg-type]
        self.clients.append(client)
        return client

    def is_network_available(self) -> bool:
        return self.online


class RecordingSink:
    """Analytics sink double recording every call; can fail selected targets."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.events: list[tuple[str, dict[str, str]]] = []
        self.user_properties: list[tuple[str, str]] = []
        self.attempted_events: list[str] = []

    def log_event(self, name: str, params: Mapping[str, str]) -> None:
        self.attempted_events.append(name)
        if name in self.failing:
            raise RuntimeError(f"sink rejected {name}")
        self.events.append((name, dict(params)))

    def set_user_property(self, name: str, value: str) -> None:
        if name in self.failing:
            raise RuntimeError(f"sink rejected {name}")
        self.user_properties.append((name, value))


@pytest.fixture
def settings() -> Settings:
    """Provide test settings with a non-routable base URL."""
    return Settings(api_base_url="http://bridgee-test", configure_logging=False)


@pytest.fixture
def tenant_id() -> str:
    """Provide a consistent test tenant ID."""
    return "acme"


@pytest.fixture
def credentials(tenant_id: str) -> TenantCredentials:
    return TenantCredentials(tenant_id=tenant_id, tenant_key="s3cret")


@pytest.fixture
def platform_context() -> FakePlatformContext:
    return FakePlatformContext()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture(autouse=True)
def _reset_singleton():
    """Keep the process-wide orchestrator from leaking between tests."""
    reset_instance()
    yield
    reset_instance()
