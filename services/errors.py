class ServiceError(Exception):
    """Base error for domain operations; carries the HTTP status used by the API."""

    status_code = 400

    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"success": False, "error": self.message}


class ValidationError(ServiceError):
    status_code = 400


class PermissionDenied(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class WorkflowError(ServiceError):
    """An illegal transition for the scholar's current stage."""

    status_code = 409
