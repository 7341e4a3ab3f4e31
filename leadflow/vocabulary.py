"""
Closed vocabularies shared by models, schemas and the lifecycle engine.
Stored as plain strings in the database.
"""


class Stage:
    """Lead position in the sales pipeline."""
    NEW = "new"
    CONTACTED = "contacted"
    SITE_VISIT = "site_visit"
    NEGOTIATION = "negotiation"
    TOKEN = "token"
    COMPLETED = "completed"
    CLOSED = "closed"
    LOST = "lost"

    PIPELINE = (NEW, CONTACTED, SITE_VISIT, NEGOTIATION, TOKEN, COMPLETED)
    TERMINAL = frozenset({COMPLETED, CLOSED, LOST})
    ALL = frozenset(PIPELINE) | TERMINAL


class Temperature:
    HOT = "hot"
    WARM = "warm"
    COLD = "cold"

    ALL = frozenset({HOT, WARM, COLD})


class CallOutcome:
    """Normalized disposition of one call attempt."""
    CONNECTED_POSITIVE = "connected_positive"
    CONNECTED_CALLBACK = "connected_callback"
    NOT_CONNECTED = "not_connected"
    NOT_INTERESTED = "not_interested"

    ALL = frozenset({CONNECTED_POSITIVE, CONNECTED_CALLBACK, NOT_CONNECTED, NOT_INTERESTED})
    ATTENDED = frozenset({CONNECTED_POSITIVE, CONNECTED_CALLBACK, NOT_INTERESTED})


class CallLifecycle:
    """Visibility state of a call log row (replaces archived flag + deleted_at)."""
    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"

    ALL = frozenset({ACTIVE, ARCHIVED, DELETED})


class VisitStatus:
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"

    ALL = frozenset({SCHEDULED, COMPLETED, CANCELLED, RESCHEDULED})


class TaskType:
    CALLBACK = "callback"
    RETRY_CALL = "retry_call"


class TaskStatus:
    PENDING = "pending"
    DONE = "done"
    CANCELLED = "cancelled"


class Role:
    ADMIN = "admin"
    SALES_MANAGER = "sales_manager"
    SALES_AGENT = "sales_agent"

    ALL = frozenset({ADMIN, SALES_MANAGER, SALES_AGENT})
    PRIVILEGED = frozenset({ADMIN, SALES_MANAGER})
