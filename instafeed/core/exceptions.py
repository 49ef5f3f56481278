"""Custom exceptions for Instafeed."""

from typing import Any, Optional


class InstafeedError(Exception):
    """Base exception for Instafeed."""
    pass


class MissingConfigError(InstafeedError):
    """No configuration has been supplied."""
    pass


class MissingCredentialsError(InstafeedError):
    """No valid access token is available."""
    pass


class InvalidAuthorizationURLError(InstafeedError):
    """The authorization URL could not be composed from the configuration."""
    pass


class MissingCodeError(InstafeedError):
    """The callback URL carried no authorization code."""
    pass


class UnableToProcessURLError(InstafeedError):
    """The callback URL could not be parsed."""
    pass


class StateMismatchError(InstafeedError):
    """The callback state did not match the nonce sent with the request."""
    pass


class AuthorizationCancelledError(InstafeedError):
    """The user dismissed the interactive login."""
    pass


class ContextDiedError(InstafeedError):
    """The owning client was closed before authorization completed."""
    pass


class DecodeError(InstafeedError):
    """Failed to decode an API payload."""
    pass


class ServerResponseError(InstafeedError):
    """Non-2xx response without a structured error body."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"Bad server response: HTTP {status_code}")


class FetchError(InstafeedError):
    """Structured error returned by the Graph API."""

    def __init__(
        self,
        message: str,
        type: str,
        code: int,
        trace_id: str,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.type = type
        self.code = code
        self.trace_id = trace_id
        self.status_code = status_code
        super().__init__(f"{type} ({code}): {message}")

    @classmethod
    def from_body(cls, body: Any, status_code: Optional[int] = None) -> Optional["FetchError"]:
        """
        Parse an error body, accepting the bare shape or the ``{"error": ...}`` envelope.

        Returns:
            FetchError, or None if the body does not carry the expected fields
        """
        if not isinstance(body, dict):
            return None
        if isinstance(body.get("error"), dict):
            body = body["error"]
        try:
            return cls(
                message=str(body["message"]),
                type=str(body["type"]),
                code=int(body["code"]),
                trace_id=str(body["fbtrace_id"]),
                status_code=status_code,
            )
        except (KeyError, TypeError, ValueError):
            return None
