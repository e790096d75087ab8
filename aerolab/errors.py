"""
Error taxonomy for oracle-backed operations.
"""


class OracleError(Exception):
    """Base error for analysis, sensitivity and image requests."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(OracleError):
    """Required configuration (API key, track) is missing."""


class TrackNotFoundError(ConfigurationError):
    """Track id is not present in the catalog."""

    def __init__(self, track_id: str):
        super().__init__(f"Track not found: {track_id}")
        self.track_id = track_id


class TransportError(OracleError):
    """Request could not reach or complete against the oracle."""


class SchemaError(OracleError):
    """Oracle responded but the payload did not match the expected structure."""


API_KEY_REMEDIATION = (
    "API key missing: create a .env file in the project root with "
    "GOOGLE_AI_API_KEY=your_api_key, or export it in your shell."
)


def describe_error(error: Exception) -> str:
    """
    Convert an error into the single message shown to the user.

    Args:
        error: Error raised by an oracle-backed operation.

    Returns:
        Human-readable message.
    """
    if isinstance(error, TrackNotFoundError):
        return "Selected track not found."
    if isinstance(error, ConfigurationError):
        return API_KEY_REMEDIATION
    if isinstance(error, OracleError):
        return error.message
    return str(error) or "An unknown error occurred"
