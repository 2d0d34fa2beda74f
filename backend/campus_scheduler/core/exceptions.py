class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when a scheduling request cannot be carried out in the current state."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=400, details=details)

class ValidationFailedError(AppError):
    """Raised when a placement has blocking validation errors."""
    def __init__(self, errors: list[str], warnings: list[str], report: dict | None = None):
        details = {"errors": list(errors), "warnings": list(warnings)}
        if report is not None:
            details["report"] = report
        super().__init__("Placement failed validation", status_code=409, details=details)
        self.errors = list(errors)
        self.warnings = list(warnings)

class LockedItemError(AppError):
    """Raised when a locked item is modified without the unrestricted flag."""
    def __init__(self, resource_type: str, resource_id: int):
        super().__init__(f"{resource_type} {resource_id} is locked", status_code=409)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: int | str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)

class ResourceInUseError(AppError):
    """Raised when a referenced resource cannot be removed."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=409, details=details)
