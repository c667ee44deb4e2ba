"""
Domain errors

Every error carries the HTTP status it maps to and a default message.
main.py renders them as {"message": ...} JSON responses.
"""

from typing import Optional


class StoreError(Exception):
    status_code = 500
    message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.message
        super().__init__(self.message)


# 400
class ValidationError(StoreError):
    status_code = 400
    message = "Invalid request"


class WeakPassword(ValidationError):
    message = "Password must be at least 8 characters"


class DuplicateEmail(StoreError):
    status_code = 400
    message = "Email already registered"


class DuplicateProduct(StoreError):
    status_code = 400
    message = "Product name already exists"


class AlreadyAdmin(StoreError):
    status_code = 400
    message = "User is already an admin"


class SelfDeletionForbidden(StoreError):
    status_code = 400
    message = "Cannot delete your own account"


class SelfRevocationForbidden(StoreError):
    status_code = 400
    message = "Cannot remove your own admin privileges"


# 401 / 403
class InvalidCredentials(StoreError):
    status_code = 401
    message = "Invalid email or password"


class NoToken(StoreError):
    status_code = 401
    message = "No token provided"


class InvalidToken(StoreError):
    status_code = 403
    message = "Invalid token"


class AdminRequired(StoreError):
    status_code = 403
    message = "Admin access required"


class AccessDenied(StoreError):
    status_code = 403
    message = "Access denied"


# 404
class NotFound(StoreError):
    status_code = 404
    message = "Not found"


class NotAnAdmin(NotFound):
    message = "Admin not found"


# 500
class StorageError(StoreError):
    status_code = 500
    message = "Database error"
