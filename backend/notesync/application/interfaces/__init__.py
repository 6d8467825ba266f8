from .local_record_store import LocalRecordStore
from .mutation_queue import MutationQueue
from .remote_gateway import RemoteGateway

__all__ = [
    "LocalRecordStore",
    "MutationQueue",
    "RemoteGateway",
]
