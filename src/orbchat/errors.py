"""Error taxonomy for orbchat.

Transport errors are scoped to a single model's stream inside a turn and are
converted into render events by the engine. Configuration errors surface to
the immediate caller and abort only that command.
"""


class OrbChatError(Exception):
    """Base class for all orbchat errors."""

    def is_retryable(self) -> bool:
        """Override in subclasses to control retry behavior."""
        return False


class TransportError(OrbChatError):
    """Network or connection failure after retries were exhausted (retryable)."""

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    def is_retryable(self) -> bool:
        return True


class RateLimitedError(TransportError):
    """HTTP 429 returned on every attempt."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(f"Rate limited: {message}")
        self.retry_after = retry_after


class ApiError(OrbChatError):
    """Backend rejected the request (non-retryable)."""

    def __init__(self, status: int, body: str):
        super().__init__(f"API Error ({status}): {body}")
        self.status = status
        self.body = body


class ParseError(OrbChatError):
    """A response body or stream fragment could not be decoded."""

    def __init__(self, message: str, line: str | None = None):
        super().__init__(message)
        self.line = line


class ConfigError(OrbChatError):
    """Invalid or unreadable local configuration."""


class MissingApiKeyError(ConfigError):
    def __init__(self) -> None:
        super().__init__(
            "No API key found. Run: orb config set-key <your-key> "
            "or set OPENROUTER_API_KEY"
        )


class InvalidApiKeyError(ConfigError):
    def __init__(self) -> None:
        super().__init__(
            "Invalid API key. Please check your key and try again "
            "(or pass --no-verify to save it anyway)"
        )


class ProfileNotFoundError(ConfigError):
    def __init__(self, name: str):
        super().__init__(f"Profile '{name}' does not exist")
        self.name = name


class ProfileExistsError(ConfigError):
    def __init__(self, name: str):
        super().__init__(f"Profile '{name}' already exists")
        self.name = name


class TemplateNotFoundError(ConfigError):
    def __init__(self, name: str):
        super().__init__(f"Template '{name}' not found")
        self.name = name


class TemplateExistsError(ConfigError):
    def __init__(self, name: str):
        super().__init__(f"Template '{name}' already exists")
        self.name = name


class NoModelSelectedError(OrbChatError):
    def __init__(self) -> None:
        super().__init__("No model selected. Cannot start chat.")


class UnknownCommandError(OrbChatError):
    def __init__(self, command: str):
        super().__init__(f"Unknown command: {command}")
        self.command = command


class ImportFormatError(OrbChatError):
    """An imported conversation file has an unrecognized layout."""


class ContextError(OrbChatError):
    """A file or git context could not be collected for a prompt."""


class SaveError(OrbChatError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not save conversation to {path}: {reason}")
        self.path = path


class TurnInProgressError(OrbChatError):
    """A command that rewrites history was issued while replies are streaming."""

    def __init__(self, action: str):
        super().__init__(f"Cannot {action} while a response is streaming. Interrupt it first.")
        self.action = action
