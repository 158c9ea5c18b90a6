"""Abstract interfaces (Protocol classes) for the attribution pipeline.

The orchestrator depends on these interfaces, not on concrete adapters. The
host application supplies the analytics sink and the platform context; the
SDK supplies the referrer resolver and match client, and tests swap any of
them for doubles.
"""

from collections.abc import Awaitable, Mapping
from enum import IntEnum
from typing import Protocol, runtime_checkable

from bridgee_sdk.core.models import AttributionRequest, MatchOutcome, ReferrerOutcome


class InstallReferrerResponse(IntEnum):
    """Setup response codes reported by the platform install referrer service."""

    SERVICE_DISCONNECTED = -1
    OK = 0
    SERVICE_UNAVAILABLE = 1
    FEATURE_NOT_SUPPORTED = 2
    DEVELOPER_ERROR = 3
    PERMISSION_ERROR = 4


# ---------------------------------------------------------------------------
# Host-provided collaborators
# ---------------------------------------------------------------------------


@runtime_checkable
class IAnalyticsSink(Protocol):
    """Analytics backend chosen by the host (e.g. a Firebase Analytics wrapper).

    Methods may return None or an awaitable. Either may raise; the
    orchestrator logs the failure and moves on to the next call.
    """

    def log_event(self, name: str, params: Mapping[str, str]) -> Awaitable[None] | None:
        """Log an event with its parameters."""
        ...

    def set_user_property(self, name: str, value: str) -> Awaitable[None] | None:
        """Set a user property."""
        ...


class IInstallReferrerStateListener(Protocol):
    """Callbacks the platform referrer client invokes after start_connection()."""

    def on_install_referrer_setup_finished(self, response_code: int) -> None:
        ...

    def on_install_referrer_service_disconnected(self) -> None:
        ...


class IInstallReferrerClient(Protocol):
    """One-shot platform client for the install referrer service.

    A client instance is good for a single session: once end_connection() has
    been called it must not be reused.
    """

    def start_connection(self, listener: IInstallReferrerStateListener) -> None:
        """Begin connecting; completion is reported through listener."""
        ...

    def get_install_referrer(self) -> str | None:
        """Return the raw referrer string. Only valid after setup reported OK."""
        ...

    def end_connection(self) -> None:
        """Release the connection."""
        ...


@runtime_checkable
class IPlatformContext(Protocol):
    """Application context handed to the SDK by the host.

    Supplies the platform capabilities the pipeline needs: fresh install
    referrer clients and a network reachability check.
    """

    def new_install_referrer_client(self) -> IInstallReferrerClient:
        ...

    def is_network_available(self) -> bool:
        ...


# ---------------------------------------------------------------------------
# Pipeline seams
# ---------------------------------------------------------------------------


@runtime_checkable
class IReferrerResolver(Protocol):
    """Resolves the install referrer into exactly one ReferrerOutcome. Never raises."""

    async def resolve(self) -> ReferrerOutcome:
        ...


@runtime_checkable
class IMatchClient(Protocol):
    """Performs one match attempt and yields exactly one MatchOutcome. Never raises."""

    async def match(self, request: AttributionRequest) -> MatchOutcome:
        ...

    async def aclose(self) -> None:
        ...


__all__ = [
    "IAnalyticsSink",
    "IInstallReferrerClient",
    "IInstallReferrerStateListener",
    "IMatchClient",
    "IPlatformContext",
    "IReferrerResolver",
    "InstallReferrerResponse",
]
