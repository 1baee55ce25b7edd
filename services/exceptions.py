"""
Custom exceptions for the Course Web Services.

Every error raised by an external function derives from WebServiceError and
carries an `errorcode` the transport layer reports back to the caller.
"""


class WebServiceError(Exception):
    """Base class for errors surfaced to web service callers."""

    errorcode = "generalexceptionmessage"

    def __init__(self, message: str, errorcode: str = None):
        self.message = message
        if errorcode is not None:
            self.errorcode = errorcode
        super().__init__(self.message)


class ValidationError(WebServiceError):
    """Raised when input parameters do not match the declared shape."""

    errorcode = "invalidparameter"

    def __init__(self, message: str, field: str = None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class ContextError(WebServiceError):
    """Raised when a scope id does not resolve to a usable context."""

    errorcode = "invalidcontext"

    def __init__(self, message: str, contextlevel: int = None, instanceid: int = None,
                 errorcode: str = None):
        self.contextlevel = contextlevel
        self.instanceid = instanceid
        super().__init__(message, errorcode)


class AccessDenied(WebServiceError):
    """Raised when a capability check fails."""

    errorcode = "nopermissions"

    def __init__(self, message: str, user_id: int = None, capability: str = None,
                 errorcode: str = None):
        self.user_id = user_id
        self.capability = capability
        super().__init__(message, errorcode)


class NotFoundError(WebServiceError):
    """Raised when a referenced record does not exist."""

    errorcode = "invalidrecord"

    def __init__(self, table: str, record_id, errorcode: str = None):
        self.table = table
        self.record_id = record_id
        super().__init__(f"Can not find data record in database table {table} (id {record_id})", errorcode)


class InvalidUserError(NotFoundError):
    """Raised when a user is not found."""

    errorcode = "invaliduser"

    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__("users", user_id)
        self.message = f"User with id {user_id} not found"
        self.args = (self.message,)
