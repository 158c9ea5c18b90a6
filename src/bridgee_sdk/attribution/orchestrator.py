"""AttributionOrchestrator: the entry point an embedding application calls.

One pipeline run:

    INIT -> RESOLVING_REFERRER -> REFERRER_OK | REFERRER_FAILED
         -> MATCHING -> MATCH_OK -> DISPATCHING -> DONE
                     -> MATCH_FAILED -> DONE

The referrer outcome is always merged into the request, success or not, and
the match call always follows it. Only a successful match outside dry-run
mode reaches the analytics sink. Nothing raised inside a run reaches the
caller: failures are logged and the run ends at DONE.

Inputs are cloned before the first suspension point, so a caller mutating
its request or params after calling log_event() cannot change what an
in-flight run sends.
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from collections.abc import Awaitable, Callable, Mapping
from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx
import structlog

from bridgee_sdk.adapters.match_client import MatchApiClient
from bridgee_sdk.adapters.referrer_resolver import InstallReferrerResolver
from bridgee_sdk.core.interfaces import (
    IAnalyticsSink,
    IMatchClient,
    IPlatformContext,
    IReferrerResolver,
)
from bridgee_sdk.core.models import (
    AttributionRequest,
    AttributionResult,
    MatchFailure,
    MatchOutcome,
    PipelineRun,
    PipelineState,
    ReferrerFailed,
    ReferrerFailureReason,
    ReferrerOutcome,
    ReferrerResolved,
    TenantCredentials,
)
from bridgee_sdk.errors import InvalidArgumentError
from bridgee_sdk.observability import configure_logging
from bridgee_sdk.settings import Settings

logger = structlog.get_logger(__name__)

EVENT_NAME_KEY = "event_name"
BFPID_KEY = "bfpid"

_Dispatcher = Callable[[PipelineRun, AttributionResult], Awaitable[None]]


def extract_bfpid(raw_referrer: str) -> str | None:
    """Return the bfpid parameter from a referrer URL or bare query string.

    Args:
        raw_referrer: Raw install referrer, e.g. "utm_source=x&bfpid=abc" or
            "https://host/path?bfpid=abc".

    Returns:
        The first non-blank bfpid value, or None.
    """
    query = urlsplit(raw_referrer).query if "?" in raw_referrer else raw_referrer
    values = parse_qs(query).get(BFPID_KEY, [])
    for value in values:
        if value.strip():
            return value
    return None


class AttributionOrchestrator:
    """Sequences referrer resolution, matching and analytics fan-out.

    Args:
        context: Host platform context (referrer clients, reachability).
        analytics_sink: Host analytics backend receiving enriched events.
        credentials: Validated tenant credentials.
        dry_run: When True the full pipeline runs but the sink is never called.
        settings: SDK settings. Defaults to Settings() from the environment.
        referrer_resolver: Override for the install referrer resolver.
        match_client: Override for the match API client.
        transport_factory: Builds a fresh httpx transport for each call of the
            default match client.

    Raises:
        InvalidArgumentError: If context, analytics_sink or credentials is missing.
    """

    def __init__(
        self,
        context: IPlatformContext,
        analytics_sink: IAnalyticsSink,
        credentials: TenantCredentials,
        *,
        dry_run: bool = False,
        settings: Settings | None = None,
        referrer_resolver: IReferrerResolver | None = None,
        match_client: IMatchClient | None = None,
        transport_factory: Callable[[], httpx.AsyncBaseTransport] | None = None,
    ) -> None:
        if context is None:
            raise InvalidArgumentError("Context cannot be null")
        if analytics_sink is None:
            raise InvalidArgumentError("AnalyticsProvider cannot be null")
        if not isinstance(analytics_sink, IAnalyticsSink):
            raise InvalidArgumentError("AnalyticsProvider must implement log_event and set_user_property")
        if credentials is None:
            raise InvalidArgumentError("Tenant credentials cannot be null")

        self._settings = settings or Settings()
        self._sink = analytics_sink
        self._credentials = credentials
        self._dry_run = bool(dry_run)
        self._referrer_resolver: IReferrerResolver = referrer_resolver or InstallReferrerResolver(context)
        self._match_client: IMatchClient = match_client or MatchApiClient(
            context, credentials, self._settings, transport_factory=transport_factory
        )
        self._inflight: set[asyncio.Task[PipelineRun]] = set()

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    @property
    def tenant_id(self) -> str:
        return self._credentials.tenant_id

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def log_event(
        self,
        event_name: str,
        extra_params: Mapping[str, str] | None = None,
        attribution_request: AttributionRequest | None = None,
    ) -> PipelineRun | None:
        """Enrich an event with matched attribution and log it to the sink.

        Args:
            event_name: Name of the event to log. Blank names are rejected.
            extra_params: Event parameters; matched UTM aliases are merged in.
            attribution_request: Hints for the match service.

        Returns:
            The finished PipelineRun, or None when the event was rejected.
        """
        run = self._prepare(event_name, extra_params, attribution_request)
        if run is None:
            return None
        await self._execute(run, self._dispatch_event)
        return run

    def log_event_nowait(
        self,
        event_name: str,
        extra_params: Mapping[str, str] | None = None,
        attribution_request: AttributionRequest | None = None,
    ) -> asyncio.Task[PipelineRun] | None:
        """Schedule log_event() on the running loop and return immediately.

        Inputs are cloned before this method returns.
        """
        run = self._prepare(event_name, extra_params, attribution_request)
        if run is None:
            return None
        return self._schedule(run, self._dispatch_event)

    async def first_open(self, attribution_request: AttributionRequest | None = None) -> PipelineRun | None:
        """Record a first app open with its matched campaign.

        On a successful match, sets the tenant-scoped UTM user properties and
        emits <tenant>_first_open, <tenant>_campaign_details, first_open and
        campaign_details.

        Args:
            attribution_request: Hints for the match service.

        Returns:
            The finished PipelineRun, or None if the inputs could not be cloned.
        """
        run = self._prepare(self._settings.first_open_event_name, None, attribution_request)
        if run is None:
            return None
        await self._execute(run, self._dispatch_first_open)
        return run

    def first_open_nowait(
        self,
        attribution_request: AttributionRequest | None = None,
    ) -> asyncio.Task[PipelineRun] | None:
        """Schedule first_open() on the running loop and return immediately."""
        run = self._prepare(self._settings.first_open_event_name, None, attribution_request)
        if run is None:
            return None
        return self._schedule(run, self._dispatch_first_open)

    async def aclose(self, timeout: float | None = None) -> None:
        """Wait for scheduled runs to reach DONE, then close the match client.

        A run waits on the platform referrer callback, which the host may
        never deliver. With timeout=None such a run keeps aclose() waiting
        indefinitely. Pass a timeout in seconds to bound the wait: runs still
        pending when it expires are cancelled and the match client is closed
        regardless.

        Args:
            timeout: Upper bound in seconds for draining scheduled runs.
        """
        pending = list(self._inflight)
        try:
            if pending:
                await asyncio.wait_for(asyncio.gather(*pending, return_exceptions=True), timeout)
        except asyncio.TimeoutError:
            logger.warning("aclose_timed_out", timeout=timeout, runs=len(pending))
        finally:
            await self._match_client.aclose()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _prepare(
        self,
        event_name: str,
        extra_params: Mapping[str, str] | None,
        attribution_request: AttributionRequest | None,
    ) -> PipelineRun | None:
        """Validate the event name and clone the caller's inputs."""
        try:
            if not isinstance(event_name, str) or not event_name.strip():
                logger.warning("event_name_empty", event_name=event_name)
                return None

            request = attribution_request.copy() if attribution_request is not None else AttributionRequest()
            request.with_param(EVENT_NAME_KEY, event_name)
            params = {str(key): value for key, value in (extra_params or {}).items()}
            return PipelineRun(event_name=event_name, request=request, params=params)
        except Exception:
            logger.exception("pipeline_prepare_failed", event_name=event_name)
            return None

    def _schedule(self, run: PipelineRun, dispatch: _Dispatcher) -> asyncio.Task[PipelineRun] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("no_running_event_loop", event_name=run.event_name, run_id=run.run_id)
            return None

        task = loop.create_task(self._execute_and_return(run, dispatch))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def _execute_and_return(self, run: PipelineRun, dispatch: _Dispatcher) -> PipelineRun:
        await self._execute(run, dispatch)
        return run

    async def _execute(self, run: PipelineRun, dispatch: _Dispatcher) -> None:
        log = logger.bind(run_id=run.run_id, event_name=run.event_name)
        try:
            run.advance(PipelineState.RESOLVING_REFERRER)
            referrer = await self._resolve_referrer()
            run.referrer = referrer
            run.request.with_param(self._settings.referrer_key, referrer.marker)

            if isinstance(referrer, ReferrerResolved):
                run.advance(PipelineState.REFERRER_OK)
                bfpid = extract_bfpid(referrer.raw_referrer)
                if bfpid is not None:
                    run.request.with_param(BFPID_KEY, bfpid)
                    log.debug("bfpid_resolved", bfpid=bfpid)
            else:
                run.advance(PipelineState.REFERRER_FAILED)
                log.warning("referrer_unavailable", reason=referrer.reason.value, error=referrer.message)

            run.advance(PipelineState.MATCHING)
            outcome = await self._match(run.request)
            run.match = outcome

            if isinstance(outcome, MatchFailure):
                run.advance(PipelineState.MATCH_FAILED)
                log.error("match_failed", error=outcome.message)
                return

            run.advance(PipelineState.MATCH_OK)
            log.debug("match_result", dry_run=self._dry_run, result=outcome.result.to_params())
            if self._dry_run:
                return

            run.advance(PipelineState.DISPATCHING)
            await dispatch(run, outcome.result)
        except Exception:
            log.exception("pipeline_failed")
        finally:
            run.advance(PipelineState.DONE)

    async def _resolve_referrer(self) -> ReferrerOutcome:
        try:
            return await self._referrer_resolver.resolve()
        except Exception as exc:
            logger.error("referrer_resolver_raised", error=str(exc))
            return ReferrerFailed(ReferrerFailureReason.TRANSPORT_ERROR, str(exc) or type(exc).__name__)

    async def _match(self, request: AttributionRequest) -> MatchOutcome:
        try:
            return await self._match_client.match(request)
        except Exception as exc:
            logger.error("match_client_raised", error=str(exc))
            return MatchFailure(str(exc) or type(exc).__name__)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    async def _dispatch_event(self, run: PipelineRun, result: AttributionResult) -> None:
        params = {**run.params, **result.to_params()}
        await self._emit(run, run.event_name, params)

    async def _dispatch_first_open(self, run: PipelineRun, result: AttributionResult) -> None:
        tenant_id = self._credentials.tenant_id
        for name, value in result.utm_fields().items():
            property_name = f"{tenant_id}_{name}".replace("-", "_")
            await self._call_sink(run, "set_user_property", self._sink.set_user_property, property_name, value)

        params = {**run.params, **result.to_params()}
        first_open = self._settings.first_open_event_name
        campaign_details = self._settings.campaign_details_event_name
        for event_name in (
            f"{tenant_id}_{first_open}",
            f"{tenant_id}_{campaign_details}",
            first_open,
            campaign_details,
        ):
            await self._emit(run, event_name, params)

    async def _emit(self, run: PipelineRun, event_name: str, params: dict[str, str]) -> None:
        # Each sink call gets its own dict so a sink mutating params cannot leak.
        if await self._call_sink(run, "log_event", self._sink.log_event, event_name, dict(params)):
            run.dispatched_events.append(event_name)

    async def _call_sink(self, run: PipelineRun, operation: str, call: Callable[..., Any], *args: Any) -> bool:
        try:
            result = call(*args)
            if inspect.isawaitable(result):
                await result
            return True
        except Exception as exc:
            run.sink_failures += 1
            logger.error(
                "sink_call_failed",
                run_id=run.run_id,
                operation=operation,
                target=args[0] if args else None,
                error=str(exc),
            )
            return False


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


_instance: AttributionOrchestrator | None = None
_instance_lock = threading.Lock()


def create_orchestrator(
    context: IPlatformContext,
    analytics_sink: IAnalyticsSink,
    tenant_id: str,
    tenant_key: str,
    dry_run: bool = False,
    *,
    settings: Settings | None = None,
    transport_factory: Callable[[], httpx.AsyncBaseTransport] | None = None,
) -> AttributionOrchestrator:
    """Build an orchestrator owned by the caller.

    Args:
        context: Host platform context.
        analytics_sink: Host analytics backend.
        tenant_id: Tenant identifier (non-empty).
        tenant_key: Tenant secret (non-empty).
        dry_run: Run the pipeline without calling the sink.
        settings: SDK settings. Defaults to Settings() from the environment.
        transport_factory: Builds a fresh httpx transport per match call.

    Raises:
        InvalidArgumentError: On any missing or empty argument.
    """
    settings = settings or Settings()
    credentials = TenantCredentials(tenant_id=tenant_id, tenant_key=tenant_key)
    orchestrator = AttributionOrchestrator(
        context,
        analytics_sink,
        credentials,
        dry_run=dry_run,
        settings=settings,
        transport_factory=transport_factory,
    )
    # Only a fully validated construction may touch process-wide logging.
    if settings.configure_logging:
        configure_logging(settings)
    logger.info("orchestrator_created", tenant_id=tenant_id, dry_run=orchestrator.dry_run)
    return orchestrator


def get_instance(
    context: IPlatformContext,
    analytics_sink: IAnalyticsSink,
    tenant_id: str,
    tenant_key: str,
    dry_run: bool = False,
    *,
    settings: Settings | None = None,
) -> AttributionOrchestrator:
    """Return the process-wide orchestrator, creating it on the first call.

    The first successful call wins; arguments passed to later calls are
    ignored. A call that fails validation leaves no instance behind.
    """
    global _instance
    with _instance_lock:
        if _instance is None:
            _instance = create_orchestrator(
                context, analytics_sink, tenant_id, tenant_key, dry_run, settings=settings
            )
        return _instance


def reset_instance() -> None:
    """Forget the process-wide orchestrator (for tests and host teardown)."""
    global _instance
    with _instance_lock:
        _instance = None


__all__ = [
    "AttributionOrchestrator",
    "BFPID_KEY",
    "EVENT_NAME_KEY",
    "create_orchestrator",
    "extract_bfpid",
    "get_instance",
    "reset_instance",
]
