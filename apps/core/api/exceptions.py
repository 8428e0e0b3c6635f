class BackendError(Exception):
    def __init__(self, message, status=None, payload=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.payload = payload

    def __str__(self):
        if self.status:
            return f'{self.message} (HTTP {self.status})'
        return self.message


class ApiError(BackendError):
    """A backend request failed or returned a non-success status."""


class AuthenticationError(BackendError):
    """The backend rejected the session token.

    Kept apart from ApiError so screen-level handlers let it reach the login
    redirect in ``login_required_token``.
    """


class EnvelopeError(ApiError):
    """A response body had neither a list nor a {"data": ...} shape."""
