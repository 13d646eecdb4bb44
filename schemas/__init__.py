from schemas.lender import (
    IncomingLender,
    LenderCreate,
    LenderFields,
    LenderResponse,
    LenderUpdate,
    MergeFields,
)
from schemas.sync import (
    LenderSyncEvent,
    MergeBody,
    ResolutionBody,
    SyncRequestResponse,
    SyncResponse,
    SyncResult,
)

__all__ = [
    "IncomingLender",
    "LenderCreate",
    "LenderFields",
    "LenderResponse",
    "LenderUpdate",
    "MergeFields",
    "LenderSyncEvent",
    "MergeBody",
    "ResolutionBody",
    "SyncRequestResponse",
    "SyncResponse",
    "SyncResult",
]
