from .record import Record, format_timestamp, parse_timestamp, utc_now
from .mutation import MutationAction, MutationQueueEntry, MutationStatus, SyncResult
from .session import AuthSession, ConnectivityState, HealthStatus

__all__ = [
    "Record",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
    "MutationAction",
    "MutationQueueEntry",
    "MutationStatus",
    "SyncResult",
    "AuthSession",
    "ConnectivityState",
    "HealthStatus",
]
