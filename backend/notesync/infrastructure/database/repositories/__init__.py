from .local_record_store import SQLAlchemyLocalRecordStore
from .mutation_queue import SQLAlchemyMutationQueue

__all__ = [
    "SQLAlchemyLocalRecordStore",
    "SQLAlchemyMutationQueue",
]
