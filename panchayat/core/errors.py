"""
Error taxonomy shared by the repository, artifact and API layers.
"""


class PortalError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Missing or mistyped input."""

    status_code = 400


class NotFoundError(PortalError):
    """Record id unknown in every store."""

    status_code = 404


class PolicyError(PortalError):
    """Operation not allowed in the record's current status."""

    status_code = 400


class GenerationError(PortalError):
    """Document rendering failed or did not finish in time."""

    status_code = 500


class StoreUnavailable(PortalError):
    """Durable store unreachable. Absorbed by the repository, never surfaced."""

    status_code = 503
