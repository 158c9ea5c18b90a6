"""Attribution resolution pipeline.

Modules:
    orchestrator: AttributionOrchestrator (referrer -> match -> sink fan-out)
        and the create_orchestrator / get_instance factories
"""

from bridgee_sdk.attribution.orchestrator import (
    AttributionOrchestrator,
    create_orchestrator,
    get_instance,
    reset_instance,
)

__all__ = ["AttributionOrchestrator", "create_orchestrator", "get_instance", "reset_instance"]
