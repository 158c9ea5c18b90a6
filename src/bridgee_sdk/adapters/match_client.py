"""HTTP client for the Bridgee match API.

A match call is a single POST to <base>/match carrying the flattened request
hints. There is no retry: callers that want one compose it themselves.

Each call opens its own httpx.AsyncClient over its own transport and closes
both on exit, so nothing mutable is shared between concurrent calls except
the read-only credentials.
"""

from collections.abc import Callable

import httpx
from pydantic import ValidationError

from bridgee_sdk.adapters.tenant_token import TENANT_TOKEN_HEADER, encode_tenant_token
from bridgee_sdk.core.interfaces import IPlatformContext
from bridgee_sdk.core.models import (
    AttributionRequest,
    MatchFailure,
    MatchOutcome,
    MatchSuccess,
    TenantCredentials,
)
from bridgee_sdk.core.schemas import MatchRequestBody, MatchResponseBody
from bridgee_sdk.observability import get_logger
from bridgee_sdk.settings import Settings

logger = get_logger(__name__)

CONTENT_TYPE = "application/json; charset=utf-8"
NO_CONNECTIVITY_MESSAGE = "no connectivity"


def _error_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class MatchApiClient:
    """Async single-attempt client for POST /match.

    Implements IMatchClient from core/interfaces.py. match() never raises;
    every failure is returned as a MatchFailure.

    Args:
        context: Platform context used for the reachability check.
        credentials: Tenant credentials for the x-tenant-token header.
        settings: SDK settings (endpoint and timeouts).
        transport_factory: Optional zero-argument callable returning a new httpx
            transport. Called once per match, since the per-call client closes
            the transport it is given. Used by tests to stub the API.
    """

    def __init__(
        self,
        context: IPlatformContext,
        credentials: TenantCredentials,
        settings: Settings,
        transport_factory: Callable[[], httpx.AsyncBaseTransport] | None = None,
    ) -> None:
        self._context = context
        self._credentials = credentials
        self._url = settings.match_url
        # Read, write and pool share the read budget; connect gets its own.
        self._timeout = httpx.Timeout(
            settings.read_timeout_ms / 1000,
            connect=settings.connect_timeout_ms / 1000,
        )
        self._transport_factory = transport_factory
        self._closed = False

    async def match(self, request: AttributionRequest) -> MatchOutcome:
        """Run one match attempt for request.

        Args:
            request: Attribution hints to match. Not mutated.

        Returns:
            MatchSuccess with the parsed AttributionResult on HTTP 200,
            MatchFailure otherwise.
        """
        if self._closed:
            return MatchFailure("match client is closed")

        try:
            online = self._context.is_network_available()
        except Exception as exc:
            logger.warning("connectivity_check_failed", error=_error_message(exc))
            online = False
        if not online:
            logger.warning("match_skipped_offline", url=self._url)
            return MatchFailure(NO_CONNECTIVITY_MESSAGE)

        try:
            token = encode_tenant_token(self._credentials.tenant_id, self._credentials.tenant_key)
        except ValueError as exc:
            logger.error("tenant_token_encoding_failed", error=str(exc))
            return MatchFailure(f"tenant token encoding failed: {exc}")

        headers = {
            "Content-Type": CONTENT_TYPE,
            "Accept": "application/json",
            TENANT_TOKEN_HEADER: token,
        }

        try:
            body = MatchRequestBody.from_request(request).model_dump_json()
            transport = self._transport_factory() if self._transport_factory is not None else None
            async with httpx.AsyncClient(timeout=self._timeout, transport=transport) as client:
                response = await client.post(self._url, content=body.encode("utf-8"), headers=headers)
                # Read the full body (success or error) before the client closes.
                await response.aread()
        except Exception as exc:
            logger.error(
                "match_request_failed",
                url=self._url,
                error_type=type(exc).__name__,
                error=_error_message(exc),
            )
            return MatchFailure(_error_message(exc))

        if response.status_code != httpx.codes.OK:
            logger.error(
                "match_http_error",
                url=self._url,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
            return MatchFailure(f"{response.status_code} - {response.text}")

        try:
            parsed = MatchResponseBody.model_validate_json(response.content)
        except ValidationError as exc:
            logger.error("match_response_invalid", url=self._url, error=str(exc))
            return MatchFailure(f"invalid match response: {exc.error_count()} error(s)")

        result = parsed.to_result()
        logger.debug("match_succeeded", matched=not result.is_empty)
        return MatchSuccess(result)

    async def aclose(self) -> None:
        """Reject further calls. In-flight calls finish on their own clients."""
        self._closed = True


__all__ = ["CONTENT_TYPE", "MatchApiClient", "NO_CONNECTIVITY_MESSAGE"]
