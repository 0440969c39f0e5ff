"""
Error types shared by the ClassHub services and routes.

Each error carries a short code (the same vocabulary the callable functions
backend uses: "not-found", "permission-denied", ...) and the HTTP status the
routes answer with.
"""


class ClassHubError(Exception):
    code = "internal"
    http_status = 500

    def __init__(self, message=""):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"error": self.message or self.code, "code": self.code}


class Unauthenticated(ClassHubError):
    code = "unauthenticated"
    http_status = 401


class InvalidArgument(ClassHubError):
    code = "invalid-argument"
    http_status = 400


class NotFound(ClassHubError):
    code = "not-found"
    http_status = 404


class PermissionDenied(ClassHubError):
    code = "permission-denied"
    http_status = 403


class PreconditionFailed(ClassHubError):
    code = "failed-precondition"
    http_status = 409


class PersistenceError(ClassHubError):
    """Transient failure talking to the assignment store."""
    code = "unavailable"
    http_status = 503
