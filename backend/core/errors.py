"""Error taxonomy for the credential lifecycle.

Route handlers let these propagate; ``backend.main`` turns them into
responses. Validation and flow errors carry a user-facing ``detail``.
``UpstreamUnavailable`` keeps its cause out of the response body.
"""

from fastapi import status


class PortalError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    detail = "Request could not be processed."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.detail
        super().__init__(self.detail)


class InvalidCredentials(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid credentials"


class InvalidToken(PortalError):
    status_code = status.HTTP_401_UNAUTHORIZED
    detail = "Invalid token"


class InvalidOrExpiredCode(PortalError):
    detail = "Invalid or expired OTP."


class InvalidFlowState(PortalError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Password recovery step is not available. Start again from forgot password."


class PasswordMismatch(PortalError):
    detail = "Passwords do not match"


class InvalidPassword(PortalError):
    detail = "Password is required."


class DuplicateIdentity(PortalError):
    status_code = status.HTTP_409_CONFLICT
    detail = "Username or email already taken"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field.capitalize()} already taken")


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    detail = "Not found."


class Forbidden(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    detail = "Access Denied"


class UpstreamUnavailable(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    detail = "Service temporarily unavailable. Try again."


class DeliveryError(Exception):
    """Raised by a notifier when a message could not be handed off."""


class ConfigurationError(RuntimeError):
    pass


class LoginRequired(Exception):
    def __init__(self, clear_cookie: bool = False):
        self.clear_cookie = clear_cookie
        super().__init__("Login required")
