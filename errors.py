"""
Error taxonomy for the storefront API.

Every domain failure carries the HTTP status it maps to and a short message
safe to return to the caller.
"""
from typing import Optional


class StorefrontError(Exception):
    status_code = 500
    message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message


class ValidationError(StorefrontError):
    status_code = 400
    message = "Some fields are missing"


class ConflictError(StorefrontError):
    status_code = 400
    message = "Conflict"


class DuplicateUser(ConflictError):
    message = "User already has an account"


class CredentialsError(StorefrontError):
    status_code = 400
    message = "Invalid credentials"


class NotRegistered(CredentialsError):
    message = "User is not registered. Please register first."


class InvalidCredentials(CredentialsError):
    message = "Password not matched"


class AuthError(StorefrontError):
    status_code = 401
    message = "Invalid or expired token"


class NotFound(StorefrontError):
    status_code = 404
    message = "Not found"


class UserNotFound(NotFound):
    message = "User Not Found"


class ProductNotFound(NotFound):
    message = "Product not found"


class CartNotFound(NotFound):
    message = "Cart Not Found"


class ProductNotInCart(NotFound):
    message = "Product Not Found in Cart"


class NoResults(NotFound):
    message = "No Product Found"
