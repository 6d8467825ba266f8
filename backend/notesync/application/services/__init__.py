from .event_broadcaster import EventBroadcaster, SyncEvent
from .reconciler import Reconciler
from .connectivity_monitor import ConnectivityMonitor
from .record_facade import LocalWriteResult, MergeReport, RecordFacade

__all__ = [
    "EventBroadcaster",
    "SyncEvent",
    "Reconciler",
    "ConnectivityMonitor",
    "LocalWriteResult",
    "MergeReport",
    "RecordFacade",
]
