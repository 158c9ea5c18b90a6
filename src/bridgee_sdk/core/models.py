"""Domain value objects for the attribution pipeline.

AttributionRequest is the only mutable type here. Every pipeline run works on
its own copy, so a caller mutating its builder after handing it over never
affects a run already in flight.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum

from bridgee_sdk.errors import InvalidArgumentError


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


class AttributionRequest:
    """Ordered key/value hints sent to the match service.

    Keys are unique and the last write wins. A value of None is kept in the
    mapping but left out of the wire payload.

    Example:
        request = AttributionRequest().with_email("a@b.co").with_gclid("abc")
    """

    def __init__(self, params: Mapping[str, str | None] | None = None) -> None:
        self._params: dict[str, str | None] = {}
        if params:
            for key, value in params.items():
                self.with_param(key, value)

    def with_param(self, key: str, value: str | None) -> AttributionRequest:
        """Set a custom hint, replacing any previous value for key."""
        if not isinstance(key, str):
            raise InvalidArgumentError(f"Request key must be a string, got {type(key).__name__}")
        if not key:
            raise InvalidArgumentError("Request key cannot be empty")
        # Re-inserting moves the key to the end: order reflects the last write.
        self._params.pop(key, None)
        self._params[key] = value
        return self

    def with_email(self, email: str) -> AttributionRequest:
        return self.with_param("email", email)

    def with_phone(self, phone: str) -> AttributionRequest:
        return self.with_param("phone", phone)

    def with_name(self, name: str) -> AttributionRequest:
        return self.with_param("name", name)

    def with_gclid(self, gclid: str) -> AttributionRequest:
        return self.with_param("gclid", gclid)

    def get(self, key: str) -> str | None:
        return self._params.get(key)

    def copy(self) -> AttributionRequest:
        """Return an independent copy of this request."""
        return AttributionRequest(self._params)

    def as_dict(self) -> dict[str, str | None]:
        """Snapshot of the hints, including keys whose value is None."""
        return dict(self._params)

    def metadata_items(self) -> list[tuple[str, str]]:
        """Flatten to (key, value) pairs, skipping None values."""
        return [(key, str(value)) for key, value in self._params.items() if value is not None]

    def __contains__(self, key: object) -> bool:
        return key in self._params

    def __iter__(self) -> Iterator[str]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AttributionRequest):
            return NotImplemented
        return self._params == other._params

    def __repr__(self) -> str:
        return f"AttributionRequest({self._params!r})"


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


_RESULT_FIELDS: tuple[str, ...] = ("source", "medium", "campaign")


@dataclass(frozen=True)
class AttributionResult:
    """Matched UTM attribution. Every field is None when nothing matched.

    Attributes:
        source: utm_source returned by the match service.
        medium: utm_medium returned by the match service.
        campaign: utm_campaign returned by the match service.
    """

    source: str | None = None
    medium: str | None = None
    campaign: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.source is None and self.medium is None and self.campaign is None

    def utm_fields(self) -> dict[str, str]:
        """Present fields keyed by their namespaced name (utm_source, ...)."""
        values = {name: getattr(self, name) for name in _RESULT_FIELDS}
        return {f"utm_{name}": value for name, value in values.items() if value is not None}

    def to_params(self) -> dict[str, str]:
        """Event parameters: both utm_<field> and bare <field> for each present field."""
        params: dict[str, str] = {}
        for name in _RESULT_FIELDS:
            value = getattr(self, name)
            if value is not None:
                params[f"utm_{name}"] = value
                params[name] = value
        return params


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TenantCredentials:
    """Tenant identity used to derive the x-tenant-token header.

    Attributes:
        tenant_id: Public tenant identifier, also used to namespace events.
        tenant_key: Tenant secret. Excluded from repr.
    """

    tenant_id: str
    tenant_key: str = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.tenant_id, str) or not self.tenant_id.strip():
            raise InvalidArgumentError("Tenant ID cannot be null or empty")
        if not isinstance(self.tenant_key, str) or not self.tenant_key.strip():
            raise InvalidArgumentError("Tenant key cannot be null or empty")


# ---------------------------------------------------------------------------
# Referrer outcome
# ---------------------------------------------------------------------------


class ReferrerFailureReason(str, Enum):
    """Why the install referrer could not be read."""

    NOT_SUPPORTED = "not_supported"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SETUP_FAILED = "setup_failed"
    DISCONNECTED = "disconnected"
    EMPTY = "empty"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class ReferrerResolved:
    """The platform returned a non-blank referrer string."""

    raw_referrer: str

    @property
    def marker(self) -> str:
        return f"success:{self.raw_referrer}"


@dataclass(frozen=True)
class ReferrerFailed:
    """The referrer lookup failed; the pipeline continues without it.

    Attributes:
        reason: Normalized failure reason.
        message: Transport error text, only set for TRANSPORT_ERROR.
    """

    reason: ReferrerFailureReason
    message: str | None = None

    @property
    def marker(self) -> str:
        if self.reason is ReferrerFailureReason.TRANSPORT_ERROR and self.message:
            return f"error:{self.reason.value}:{self.message}"
        return f"error:{self.reason.value}"


ReferrerOutcome = ReferrerResolved | ReferrerFailed


# ---------------------------------------------------------------------------
# Match outcome
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchSuccess:
    result: AttributionResult


@dataclass(frozen=True)
class MatchFailure:
    message: str


MatchOutcome = MatchSuccess | MatchFailure


# ---------------------------------------------------------------------------
# Pipeline run record
# ---------------------------------------------------------------------------


class PipelineState(str, Enum):
    """States a single pipeline run moves through. Every run ends at DONE."""

    INIT = "init"
    RESOLVING_REFERRER = "resolving_referrer"
    REFERRER_OK = "referrer_ok"
    REFERRER_FAILED = "referrer_failed"
    MATCHING = "matching"
    MATCH_OK = "match_ok"
    MATCH_FAILED = "match_failed"
    DISPATCHING = "dispatching"
    DONE = "done"


@dataclass
class PipelineRun:
    """Observable record of one logEvent / firstOpen run.

    Attributes:
        event_name: Event name the run was started for.
        request: The run's private copy of the attribution request.
        params: The run's private copy of the extra event parameters.
        run_id: Correlation id used in log lines.
        states: States visited, in order.
        referrer: Referrer outcome, once resolved.
        match: Match outcome, once the match call completed.
        dispatched_events: Event names successfully handed to the sink.
        sink_failures: Number of sink calls that raised.
    """

    event_name: str
    request: AttributionRequest
    params: dict[str, str]
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    states: list[PipelineState] = field(default_factory=lambda: [PipelineState.INIT])
    referrer: ReferrerOutcome | None = None
    match: MatchOutcome | None = None
    dispatched_events: list[str] = field(default_factory=list)
    sink_failures: int = 0

    @property
    def state(self) -> PipelineState:
        return self.states[-1]

    def advance(self, state: PipelineState) -> None:
        self.states.append(state)


__all__ = [
    "AttributionRequest",
    "AttributionResult",
    "MatchFailure",
    "MatchOutcome",
    "MatchSuccess",
    "PipelineRun",
    "PipelineState",
    "ReferrerFailed",
    "ReferrerFailureReason",
    "ReferrerOutcome",
    "ReferrerResolved",
    "TenantCredentials",
]
