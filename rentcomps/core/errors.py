"""Error taxonomy for the RETS client and comp pipeline.

Malformed responses are not represented here: they degrade to an empty
record list and a logged warning.
"""


class RetsError(Exception):
    """Base class for every error raised by the comp-search core."""


class ConfigurationError(RetsError):
    """Required credentials or endpoint missing. Never retried."""


class NetworkError(RetsError):
    """Transport failure, timeout, or an unexpected HTTP status."""


class _ReplyError(RetsError):
    """Error carrying the provider's reply code and reply text."""

    def __init__(self, message: str, reply_code: int | None = None, reply_text: str = "") -> None:
        super().__init__(message)
        self.reply_code = reply_code
        self.reply_text = reply_text


class AuthError(_ReplyError):
    """Login rejected, or a 401 persisted after one retry."""


class ProtocolError(_ReplyError):
    """Non-zero reply code (other than no-records) or missing capability."""
