"""Custom exceptions for the property attributes service."""


class PropertyError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, error_id=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_id = error_id or 'app.internal_error'
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['id'] = self.error_id
        rv['message'] = self.message
        rv['status'] = 'error'
        return rv

    def __repr__(self):
        return f"<{type(self).__name__}(id='{self.error_id}', status_code={self.status_code})>"


class ValidationError(PropertyError):
    """Raised when an entity is malformed or misses a required attribute."""
    def __init__(self, message, error_id=None, payload=None):
        super().__init__(message, 400, error_id or 'app.validation_error', payload)


class NotFoundError(PropertyError):
    """Exception raised when a resource is not found."""
    def __init__(self, message="Resource not found", error_id=None, payload=None):
        super().__init__(message, 404, error_id or 'app.not_found', payload)


class ConflictError(PropertyError):
    """Raised when a write collides with an existing row."""
    def __init__(self, message, error_id=None, payload=None):
        super().__init__(message, 409, error_id or 'app.conflict', payload)


class FieldLimitError(PropertyError):
    """Raised when a group already holds its maximum number of active fields."""
    def __init__(self, group_id, limit, error_id=None):
        message = f"Property group {group_id} reached its limit of {limit} active fields"
        super().__init__(message, 422, error_id or 'app.property_field.limit_reached', {'limit': limit})
        self.group_id = group_id
        self.limit = limit


class StoreError(PropertyError):
    """Opaque backing-store failure. The original error is kept as __cause__."""
    def __init__(self, operation, error_id=None):
        message = f"Backing store failure during {operation}"
        super().__init__(message, 500, error_id or 'app.store_error')
        self.operation = operation
