"""
Client-side errors.

Form validation problems are raised before any request is made. Collaborator
failures carry the HTTP status the service answered with (None when the
request never got a response).
"""
from typing import Optional


class StorefrontError(Exception):
    pass


class FormValidationError(StorefrontError):
    """Input rejected locally; nothing was sent."""


class AuthorizationError(StorefrontError):
    def __init__(self, message: str, redirect_to: str):
        super().__init__(message)
        self.redirect_to = redirect_to


class ApiError(StorefrontError):
    def __init__(self, status_code: Optional[int], message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class NotFoundError(ApiError):
    pass


class StoreCorruptedError(StorefrontError):
    """A persisted value could not be decoded back into state."""
