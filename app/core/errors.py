"""
Domain errors raised by the guest-list services.

Routes translate these into HTTP responses (see ``main.py``); services never
raise ``HTTPException`` themselves.
"""


class GuestListServiceError(Exception):
    """Base class for all service errors"""

    status_code = 400

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(GuestListServiceError):
    """Bad input shape. Raised before anything is persisted."""

    status_code = 422


class NotFoundError(GuestListServiceError):
    status_code = 404

    def __init__(self, resource: str = "Resource", message: str | None = None):
        super().__init__(message or f"{resource} not found")
        self.resource = resource


class InvalidTokenError(NotFoundError):
    """RSVP token does not match an active guest list"""

    def __init__(self, message: str = "This RSVP link is invalid or has expired"):
        super().__init__("Guest list", message)


class InvalidAdmissionCodeError(NotFoundError):
    """Admission code is not of the form ``<event_instance_id>-<rsvp_id>``"""

    def __init__(self, code: str):
        super().__init__("Admission code", f"Admission code not recognised: {code!r}")
        self.code = code


class UpstreamUnavailable(GuestListServiceError):
    """Staffing notification endpoint failed. Never leaves the orchestrator."""

    status_code = 502
