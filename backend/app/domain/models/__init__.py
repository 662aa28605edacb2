"""Domain models"""

# Lead / assistant / call records
from .lead import (
    CallConnectionStatus,
    SUCCESS_STATUSES,
    Lead,
)

from .assistant import (
    SyncStatus,
    AssistantStatus,
    Assistant,
)

from .call import (
    CallStatus,
    ProviderEventType,
    Customer,
    ProviderCall,
    ProviderEvent,
    CallRecord,
)

# Auto-call engine
from .call_cycle import (
    EligibilityCriteria,
    AttemptPlan,
    CallCyclePolicy,
)

from .auto_call import (
    AutoCallStatus,
    AutoCallSettingsUpdate,
    EligibleLeadsFilter,
    DispatchResult,
    ReconcileResult,
)

__all__ = [
    # Records
    "CallConnectionStatus",
    "SUCCESS_STATUSES",
    "Lead",
    "SyncStatus",
    "AssistantStatus",
    "Assistant",
    "CallStatus",
    "ProviderEventType",
    "Customer",
    "ProviderCall",
    "ProviderEvent",
    "CallRecord",
    # Auto-call engine
    "EligibilityCriteria",
    "AttemptPlan",
    "CallCyclePolicy",
    "AutoCallStatus",
    "AutoCallSettingsUpdate",
    "EligibleLeadsFilter",
    "DispatchResult",
    "ReconcileResult",
]
