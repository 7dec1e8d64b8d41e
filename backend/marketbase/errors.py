"""
Error taxonomy.

AppError subclasses reach the HTTP boundary and carry the status code they
translate to. IndexSyncError and SearchDegradedError are recovered inside the
synchronizer and the fallback coordinator respectively and are only ever
logged or attached to a SearchOutcome.
"""


class AppError(Exception):
    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400
    error = "Bad Request"


class NotFoundError(AppError):
    status_code = 404
    error = "Not Found"

    def __init__(self, entity: str, entity_id=None):
        if entity_id is None:
            message = f"{entity} not found"
        else:
            message = f"{entity} with ID {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(AppError):
    status_code = 409
    error = "Conflict"

    def __init__(self, entity: str, field: str, value):
        super().__init__(f"{entity} with {field} \"{value}\" already exists")
        self.entity = entity
        self.field = field
        self.value = value


class UnhandledError(AppError):
    status_code = 500
    error = "Internal Server Error"


class SearchIndexError(Exception):
    """Raised by the search index adapter for any client/transport failure."""

    def __init__(self, operation: str, detail: str):
        super().__init__(f"{operation} failed: {detail}")
        self.operation = operation
        self.detail = detail


class IndexSyncError(Exception):
    def __init__(self, operation: str, index: str, entity_id, cause: BaseException):
        super().__init__(f"{operation} of {index}/{entity_id} failed: {cause}")
        self.operation = operation
        self.index = index
        self.entity_id = entity_id
        self.cause = cause


class SearchDegradedError(Exception):
    def __init__(self, operation: str, cause: BaseException):
        super().__init__(f"{operation}: search index unavailable ({cause})")
        self.operation = operation
        self.cause = cause
