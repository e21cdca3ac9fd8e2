from fastapi import HTTPException
from typing import Any, Optional
from homekeeper.schemas.result import ErrorCategory


class CustomException(HTTPException):
    """Base exception class for all custom application exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int,
        category: ErrorCategory,
        headers: Optional[dict] = None
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.category = category


class ResourceNotFoundException(CustomException):
    """Exception raised when a requested resource is not found"""

    def __init__(
        self,
        resource_name: str,
        resource_id: Optional[Any] = None,
        message: Optional[str] = None
    ):
        if message:
            error_message = message
        elif resource_id:
            error_message = f"{resource_name} with ID '{resource_id}' was not found."
        else:
            error_message = f"{resource_name} was not found."

        super().__init__(
            message=error_message,
            status_code=404,
            category=ErrorCategory.NOT_FOUND
        )


class AuthenticationException(CustomException):
    """
    Exception raised when authentication fails.

    ``reason`` keeps the internal cause (expired, bad signature, unknown
    subject...) for logs; it is never part of the response body.
    """

    def __init__(
        self,
        message: str = "Authentication required",
        reason: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=401,
            category=ErrorCategory.AUTHENTICATION,
            headers={"WWW-Authenticate": "Bearer"}
        )
        self.reason = reason or message


class AuthorizationException(CustomException):
    """Exception raised when user lacks required permissions"""

    def __init__(
        self,
        permission: Optional[str] = None,
        message: Optional[str] = None,
        status_code: int = 403
    ):
        if message:
            error_message = message
        elif permission:
            error_message = f"You do not have permission to perform this action. Required permission: {permission}"
        else:
            error_message = "Forbidden"

        super().__init__(
            message=error_message,
            status_code=status_code,
            category=ErrorCategory.AUTHORIZATION
        )


class OwnerProtectedException(AuthorizationException):
    """Raised when an operation would strip a household of its owner"""

    def __init__(self, message: str = "The household owner cannot be removed or demoted."):
        super().__init__(message=message)


class DuplicateResourceException(CustomException):
    """Exception raised when attempting to create a resource that already exists"""

    def __init__(
        self,
        resource_name: str,
        identifier: Optional[str] = None,
        status_code: int = 409
    ):
        if identifier:
            message = f"{resource_name} with identifier '{identifier}' already exists."
        else:
            message = f"{resource_name} already exists."

        super().__init__(
            message=message,
            status_code=status_code,
            category=ErrorCategory.RESOURCE_CONFLICT
        )


class ConflictException(CustomException):
    """Exception raised when a request conflicts with the current resource state"""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=409,
            category=ErrorCategory.RESOURCE_CONFLICT
        )


class BadRequestException(CustomException):
    """Exception raised for malformed or invalid requests"""

    def __init__(self, message: str = "The request is invalid or malformed."):
        super().__init__(
            message=message,
            status_code=400,
            category=ErrorCategory.BAD_REQUEST
        )


class NotAcceptableException(CustomException):
    """Exception raised when a well-formed request cannot be honored as sent"""

    def __init__(self, message: str = "Token is not expired"):
        super().__init__(
            message=message,
            status_code=406,
            category=ErrorCategory.NOT_ACCEPTABLE
        )


class SessionResetException(CustomException):
    """
    Raised when the refresh credential can no longer be trusted.

    The client must drop every session cookie and log in again.
    """

    def __init__(self, reason: str = "invalid refresh token"):
        super().__init__(
            message="Session has been reset",
            status_code=205,
            category=ErrorCategory.SESSION_RESET
        )
        self.reason = reason


class CorruptStateException(CustomException):
    """Raised when stored data violates a membership invariant"""

    def __init__(self, message: str = "Household membership data is inconsistent."):
        super().__init__(
            message=message,
            status_code=500,
            category=ErrorCategory.CORRUPT_STATE
        )
