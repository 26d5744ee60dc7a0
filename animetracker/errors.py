# animetracker/errors.py

class AppError(Exception):
    """Base class for failures that map onto an HTTP status."""
    status_code = 500

class ValidationError(AppError):
    """Raised when input or business validation fails."""
    status_code = 400

class AuthError(AppError):
    """Missing, invalid or expired credentials."""
    status_code = 401

class MalformedTokenError(AuthError):
    pass

class ExpiredTokenError(AuthError):
    pass

class InvalidTokenError(AuthError):
    pass

class InvalidCredentialsError(AuthError):
    pass

class NotFoundError(AppError):
    """Raised when an entity is not found."""
    status_code = 404

class ConflictError(AppError):
    """Raised when a unique field is already taken."""
    status_code = 409

class PersistenceError(AppError):
    status_code = 500
