from models.lender import COMPARABLE_FIELDS, MasterLender, SyncSource
from models.sync_request import LenderSyncRequest, SyncRequestStatus, SyncRequestType
from models.user_role import UserRole

__all__ = [
    "COMPARABLE_FIELDS",
    "MasterLender",
    "LenderSyncRequest",
    "SyncRequestStatus",
    "SyncRequestType",
    "SyncSource",
    "UserRole",
]
