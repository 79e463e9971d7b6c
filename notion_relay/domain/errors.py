"""
Error taxonomy for conversation handling.

Every error here is user facing: the engine turns it into a plain-text reply
and the invocation still returns normally to the webhook caller.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for errors surfaced to the chat user"""

    user_message = "❌ Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class AuthorizationDenied(RelayError):
    user_message = "🚫 Unauthorized. You are not allowed to use this bot."


class RateLimited(RelayError):
    def __init__(self, remaining: int):
        self.remaining = remaining
        super().__init__(
            f"⏱️ Rate limit exceeded. Please try again later.\nRemaining requests: {remaining}"
        )


class ExternalCallFailed(RelayError):
    """A messaging or document-store call returned a failure"""

    def __init__(self, operation: str, error: Optional[str] = None):
        self.operation = operation
        self.error = error or "Unknown error"
        super().__init__(f"❌ Error during {operation}: {self.error}\n\nPlease try again.")


class ValidationFailed(RelayError):
    pass


class SessionExpired(RelayError):
    user_message = "❌ Session expired. Please send the URL again."
