"""Bridgee attribution SDK.

Enriches analytics events with UTM attribution resolved from the install
referrer and the Bridgee match service, then forwards them to the host's
analytics sink.
"""

from bridgee_sdk.attribution import (
    AttributionOrchestrator,
    create_orchestrator,
    get_instance,
    reset_instance,
)
from bridgee_sdk.core.interfaces import IAnalyticsSink, IPlatformContext
from bridgee_sdk.core.models import AttributionRequest, AttributionResult, PipelineRun, PipelineState
from bridgee_sdk.errors import BridgeeError, InvalidArgumentError
from bridgee_sdk.settings import Settings

__version__ = "0.1.0"

__all__ = [
    "AttributionOrchestrator",
    "AttributionRequest",
    "AttributionResult",
    "BridgeeError",
    "IAnalyticsSink",
    "IPlatformContext",
    "InvalidArgumentError",
    "PipelineRun",
    "PipelineState",
    "Settings",
    "create_orchestrator",
    "get_instance",
    "reset_instance",
]
