"""
Lifecycle error taxonomy.

Every failure the engine can surface to a caller is one of these. The API layer
maps them to HTTP responses through a single exception handler (see main.py),
so services raise them and never build error payloads themselves.
"""


class LifecycleError(Exception):
    """Base class for all typed engine failures."""

    status_code = 500
    error_code = "lifecycle_error"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class NotFoundError(LifecycleError):
    """Lead, visit, call or agent does not exist."""

    status_code = 404
    error_code = "not_found"


class ForbiddenError(LifecycleError):
    """Caller is not allowed to act on the row (or write the fields) it targeted."""

    status_code = 403
    error_code = "forbidden"


class EventValidationError(LifecycleError):
    """Event parameters are malformed. Raised before any persistence attempt."""

    status_code = 400
    error_code = "validation_error"


class ExternalDispatchError(LifecycleError):
    """Telephony provider unreachable or rejected the request. No CRM state touched."""

    status_code = 502
    error_code = "external_dispatch_failed"


class PersistenceConflictError(LifecycleError):
    """The store rejected the unit of work. Everything in it was rolled back."""

    status_code = 409
    error_code = "persistence_conflict"
