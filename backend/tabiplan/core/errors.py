"""
Typed failures raised by the service layer.

The routing layer maps each kind onto an HTTP status in ``tabiplan.main``.
"""


class TabiplanError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(TabiplanError):
    """Malformed or out-of-range input, detected before any write."""
    status_code = 400


class ConflictError(ValidationFailure):
    """The requested record already exists."""


class NotFoundError(TabiplanError):
    """The addressed record does not exist or belongs to another user."""
    status_code = 404

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} {identifier} not found")
        self.resource = resource
        self.identifier = identifier


class StorageFailure(TabiplanError):
    """A transaction was aborted and rolled back."""
    status_code = 500
