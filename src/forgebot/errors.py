"""Error taxonomy for the workflow engine.

Every error carries the message shown to the user. The dispatcher maps each
class to a recovery policy:

- UserInputError: re-prompt, workflow state unchanged
- SessionStateError: reset to idle and ask the user to restart the command
- UpstreamError: generic failure; callers decide whether state survives
- AuthError: ask the user to /start, no state mutation
"""


class ForgeBotError(Exception):
    """Base class for errors with a user-facing message."""

    default_message = "❌ An error occurred. Please try again later."

    def __init__(self, message: str = ""):
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class UserInputError(ForgeBotError):
    """Malformed address, amount or private key."""

    default_message = "❌ Invalid input. Please try again."


class SessionStateError(ForgeBotError):
    """Missing or incoherent workflow data for the current step."""

    default_message = (
        "⚠️ Your previous action could not be resumed. Please restart the command."
    )


class UpstreamError(ForgeBotError):
    """Quote, swap or chain call failure."""

    default_message = "❌ The service is temporarily unavailable. Please try again later."


class AuthError(ForgeBotError):
    """No identity bound to the session."""

    default_message = "❌ Please start the bot first with /start command."


class DuplicateOperationError(ForgeBotError):
    """A pending operation was already submitted."""

    default_message = "⚠️ This operation has already been processed."
