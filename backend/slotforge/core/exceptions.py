class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when input data is malformed, e.g. an invalid recurrence config."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class StateConflictError(AppError):
    """Raised when an operation does not fit the current state of a record."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)

class PermissionDeniedError(AppError):
    """Raised when the acting party may not perform an operation."""
    def __init__(self, message: str):
        super().__init__(message, status_code=403)
