"""
Domain exceptions and user-facing error messages.

Only failures that abort an operation are exceptions.  Field-level defaults
applied by the analysis validator and "no match" routing outcomes are normal
results and never raised.
"""


class GuardianError(Exception):
    """Base class for all domain errors raised by the pipeline."""


class ExtractionFailure(GuardianError):
    """OCR / vision extraction unavailable or returned unusable text (recoverable)."""


class AnalysisParseError(GuardianError):
    """Completion service returned a payload that is not a usable JSON object."""


class CompletionError(GuardianError):
    """The completion service could not be reached or returned no content."""


class InvalidStatusTransition(GuardianError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move document from '{current}' to '{target}'")
        self.current = current
        self.target = target


class NotFound(GuardianError):
    pass


class EmailAccountLimit(GuardianError):
    pass


class EmailSourceError(GuardianError):
    """The mail provider rejected a request or could not be reached."""


# Substring of a technical message → text safe to show to the user.
# Checked in order; the first key contained in the message wins.
_FRIENDLY_MESSAGES: tuple[tuple[str, str], ...] = (
    # Network
    ("Failed to fetch", "Unable to connect. Please check your internet connection."),
    ("Network request failed", "Network error. Please check your connection and try again."),
    ("ECONNREFUSED", "Unable to reach the server. Please try again later."),
    ("ETIMEDOUT", "Request timed out. Please try again."),
    ("timed out", "Request timed out. Please try again."),
    # Auth
    ("Invalid login credentials", "Invalid email or password. Please try again."),
    ("Unauthorized", "Please sign in to continue."),
    ("JWT expired", "Your session has expired. Please sign in again."),
    # Rate limiting
    ("rate limit", "Too many requests. Please wait a moment and try again."),
    ("Too many requests", "Please slow down and try again in a few seconds."),
    # Storage
    ("Payload too large", "File is too large. Please use a smaller file."),
    # Email accounts
    ("Token refresh failed", "Gmail session expired. Please reconnect your account."),
    ("Maximum 3 accounts allowed", "You can only link up to 3 Gmail accounts."),
    # Analysis
    ("OCR failed", "Could not read text from the image. Please try a clearer photo."),
    ("Failed to parse AI response", "Could not analyze the document. Please try again."),
    ("title must be a non-empty string", "Could not analyze the document. Please try again."),
    ("Vision API error", "Image analysis failed. Please try with a clearer image."),
)

_GENERIC_BY_KEYWORD: tuple[tuple[tuple[str, ...], str], ...] = (
    (("network", "econnrefused", "offline"), "Connection error. Please check your internet and try again."),
    (("login", "password", "credentials", "session", "jwt"), "Authentication error. Please sign in again."),
    (("invalid", "required", "must be", "validation"), "Please check your input and try again."),
    (("permission", "forbidden", "access denied"), "You don't have permission to do this."),
    (("not found", "does not exist"), "The requested item was not found."),
    (("too many",), "Too many requests. Please wait and try again."),
    (("server", "500", "503"), "Server error. Please try again later."),
)


def friendly_message(error: Exception | str) -> str:
    """Map an exception (or its message) to a user-facing sentence."""
    message = error if isinstance(error, str) else str(error)
    lower = message.lower()

    for key, friendly in _FRIENDLY_MESSAGES:
        if key.lower() in lower:
            return friendly

    for keywords, friendly in _GENERIC_BY_KEYWORD:
        if any(k in lower for k in keywords):
            return friendly

    return "Something went wrong. Please try again."
