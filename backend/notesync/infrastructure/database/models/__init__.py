from .local_record import LocalRecordModel
from .mutation_queue_entry import MutationQueueEntryModel

__all__ = [
    "LocalRecordModel",
    "MutationQueueEntryModel",
]
