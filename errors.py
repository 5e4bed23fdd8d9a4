"""
Error taxonomy for the storefront.

Every error carries the HTTP status it maps to; main.py converts them into
``{"success": false, "error": message}`` bodies.
"""
from fastapi import status


class StoreError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationFailure(StoreError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationFailure(StoreError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(StoreError):
    status_code = status.HTTP_404_NOT_FOUND


class PersistenceFailure(StoreError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class MalformedClientState(StoreError):
    status_code = status.HTTP_400_BAD_REQUEST
