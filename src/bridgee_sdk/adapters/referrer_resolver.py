"""Install referrer resolution over the platform's one-shot referrer client.

Each resolve() call opens a fresh platform client, waits for its setup
callback and maps every response path to exactly one ReferrerOutcome. The
client connection is released exactly once per call, on every path.

Platform callbacks may arrive on any thread; completion is handed back to
the awaiting event loop with call_soon_threadsafe.
"""

import asyncio
import threading

from bridgee_sdk.core.interfaces import (
    IInstallReferrerClient,
    IPlatformContext,
    InstallReferrerResponse,
)
from bridgee_sdk.core.models import (
    ReferrerFailed,
    ReferrerFailureReason,
    ReferrerOutcome,
    ReferrerResolved,
)
from bridgee_sdk.observability import get_logger

logger = get_logger(__name__)


class _ReferrerSession:
    """Listener bound to one platform client and one pending future."""

    def __init__(
        self,
        client: IInstallReferrerClient,
        loop: asyncio.AbstractEventLoop,
        future: "asyncio.Future[ReferrerOutcome]",
    ) -> None:
        self._client = client
        self._loop = loop
        self._future = future
        self._lock = threading.Lock()
        self._completed = False
        self._released = False

    # -- platform callbacks -------------------------------------------------

    def on_install_referrer_setup_finished(self, response_code: int) -> None:
        if self._completed:
            return
        if response_code == InstallReferrerResponse.OK:
            self.complete(self._read_referrer())
        elif response_code == InstallReferrerResponse.FEATURE_NOT_SUPPORTED:
            logger.warning("install_referrer_not_supported")
            self.complete(ReferrerFailed(ReferrerFailureReason.NOT_SUPPORTED))
        elif response_code == InstallReferrerResponse.SERVICE_UNAVAILABLE:
            logger.warning("install_referrer_service_unavailable")
            self.complete(ReferrerFailed(ReferrerFailureReason.SERVICE_UNAVAILABLE))
        else:
            logger.warning("install_referrer_setup_failed", response_code=response_code)
            self.complete(ReferrerFailed(ReferrerFailureReason.SETUP_FAILED))

    def on_install_referrer_service_disconnected(self) -> None:
        logger.debug("install_referrer_service_disconnected")
        self.complete(ReferrerFailed(ReferrerFailureReason.DISCONNECTED))

    # -- completion ---------------------------------------------------------

    def complete(self, outcome: ReferrerOutcome) -> None:
        """Deliver outcome once and release the client. Later calls are ignored."""
        with self._lock:
            if self._completed:
                return
            self._completed = True
        self._release()
        self._loop.call_soon_threadsafe(self._set_result, outcome)

    def _set_result(self, outcome: ReferrerOutcome) -> None:
        if not self._future.done():
            self._future.set_result(outcome)

    def _read_referrer(self) -> ReferrerOutcome:
        try:
            raw = self._client.get_install_referrer()
        except Exception as exc:
            logger.error("install_referrer_read_failed", error=str(exc))
            return ReferrerFailed(ReferrerFailureReason.TRANSPORT_ERROR, str(exc) or type(exc).__name__)
        if raw is None or not raw.strip():
            return ReferrerFailed(ReferrerFailureReason.EMPTY)
        return ReferrerResolved(raw)

    def _release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        try:
            self._client.end_connection()
        except Exception as exc:
            # The outcome is already decided; a failing release only gets logged.
            logger.warning("install_referrer_release_failed", error=str(exc))


class InstallReferrerResolver:
    """Resolves the install referrer through the host's platform context.

    Implements IReferrerResolver from core/interfaces.py. Never retries and
    never raises: every failure becomes a ReferrerFailed outcome.

    Args:
        context: Platform context providing fresh install referrer clients.
    """

    def __init__(self, context: IPlatformContext) -> None:
        self._context = context

    async def resolve(self) -> ReferrerOutcome:
        """Open a new referrer session and wait for its single outcome."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[ReferrerOutcome] = loop.create_future()

        try:
            client = self._context.new_install_referrer_client()
        except Exception as exc:
            logger.error("install_referrer_client_unavailable", error=str(exc))
            return ReferrerFailed(ReferrerFailureReason.TRANSPORT_ERROR, str(exc) or type(exc).__name__)

        session = _ReferrerSession(client, loop, future)
        try:
            client.start_connection(session)
        except Exception as exc:
            logger.error("install_referrer_connect_failed", error=str(exc))
            session.complete(
                ReferrerFailed(ReferrerFailureReason.TRANSPORT_ERROR, str(exc) or type(exc).__name__)
            )

        outcome = await future
        if isinstance(outcome, ReferrerResolved):
            logger.debug("install_referrer_resolved", referrer=outcome.raw_referrer)
        return outcome


__all__ = ["InstallReferrerResolver"]
