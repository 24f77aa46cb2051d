from typing import Optional, Any

class CityBuilderError(Exception):
    """
    Base exception for CityBuilder application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class BadRequestError(CityBuilderError):
    """
    Raised when a request is missing fields or carries unusable values.
    """
    def __init__(self, message: str = "Bad request", details: Optional[Any] = None):
        super().__init__(message, code="BAD_REQUEST", status_code=400, details=details)

class AuthenticationError(CityBuilderError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Unauthorized - invalid token - please login", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class ResourceNotFoundError(CityBuilderError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class ConfigurationError(CityBuilderError):
    """
    Raised when a required server setting is missing at request time.
    """
    def __init__(self, message: str = "Server configuration error", details: Optional[Any] = None):
        super().__init__(message, code="CONFIGURATION_ERROR", status_code=500, details=details)

class NotImplementedFeatureError(CityBuilderError):
    def __init__(self, message: str = "Not implemented yet", details: Optional[Any] = None):
        super().__init__(message, code="NOT_IMPLEMENTED", status_code=501, details=details)

class ExternalServiceError(CityBuilderError):
    """
    Raised when an external service (SMTP relay, ImageKit) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)
