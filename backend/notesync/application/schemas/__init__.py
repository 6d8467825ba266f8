from .record import (
    TABLE_SCHEMAS,
    ConnectivityUpdate,
    NoteFields,
    RecordCreate,
    RecordResponse,
    RecordUpdate,
    SessionCreate,
    SessionResponse,
    SyncResultResponse,
    SyncStatusResponse,
    TrainingCompletionFields,
)

__all__ = [
    "TABLE_SCHEMAS",
    "ConnectivityUpdate",
    "NoteFields",
    "RecordCreate",
    "RecordResponse",
    "RecordUpdate",
    "SessionCreate",
    "SessionResponse",
    "SyncResultResponse",
    "SyncStatusResponse",
    "TrainingCompletionFields",
]
