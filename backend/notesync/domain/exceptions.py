"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist locally."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class RecordConflictError(Exception):
    """Raised when a create reuses the id of a live record or of another owner's record."""

    def __init__(self, record_id: str, reason: str):
        self.record_id = record_id
        self.reason = reason
        super().__init__(f"Record id '{record_id}' cannot be created: {reason}")


class UnsupportedTableError(ValueError):
    """Raised when a record targets a table that is not synced."""

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Sync not allowed for table: {table}")


class LocalStorageError(Exception):
    """The device store rejected a write (quota, serialization, I/O).

    Distinct from remote failures: the caller must tell the user the edit
    may not be durable.
    """

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Could not save locally ({operation}): {detail}")


class QueueError(Exception):
    """A mutation queue entry could not be appended or transitioned."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Mutation queue {operation} failed: {detail}")


class RemoteGatewayError(Exception):
    """Base class for every failure reported by the remote store."""


class RemoteNotAuthenticatedError(RemoteGatewayError):
    """No valid session for a call that requires one."""

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class RemoteNotFoundError(RemoteGatewayError):
    """The remote has no live record with the requested id."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} record '{record_id}' not found on remote")


class RemoteNetworkError(RemoteGatewayError):
    """The remote could not be reached."""


class RemoteTimeoutError(RemoteNetworkError):
    """The remote did not answer within the per-call timeout."""


class RemoteRejectedError(RemoteGatewayError):
    """The remote refused the request (validation, conflict, server error)."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"Remote rejected request ({status_code}): {message}")
