"""
Error taxonomy for content operations.

Each error carries the HTTP status the editor API answers with, so the
blueprint can translate any of them with a single error handler.
"""


class ContentError(Exception):
    """Base class for failures raised by the content services."""
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        payload = {'error': self.message}
        payload.update(self.extra)
        return payload


class ReadOnlyMode(ContentError):
    """Editor operations are disabled outside development mode."""
    status_code = 403

    def __init__(self, message: str = 'Editor is development only', **extra):
        super().__init__(message, **extra)


class InvalidPath(ContentError):
    """Path is missing, not a scalar, absolute or tries to traverse upwards."""
    status_code = 403


class NotFound(ContentError):
    status_code = 404


class AlreadyExists(ContentError):
    status_code = 400


class ReservedName(ContentError):
    status_code = 400


class BadRequest(ContentError):
    status_code = 400


class InternalError(ContentError):
    status_code = 500
