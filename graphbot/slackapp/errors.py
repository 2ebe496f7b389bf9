# graphbot/slackapp/errors.py

"""
Exception hierarchy for the graph bot.

Errors fall into two groups. Those raised before the slash command is
acknowledged (`VerificationError`, `NotFoundError`, `InvalidTimeRangeError`)
become an HTTP status or a short message back to Slack. Those raised inside the
background delivery task (`RenderError`, `UploadError`) are only ever logged.
`ConfigError` and `CredentialError` abort process startup.
"""


class GraphBotError(Exception):
    """Base class for every error raised by the slackapp package."""


class ConfigError(GraphBotError):
    """The configuration document is unreadable or malformed."""


class CredentialError(GraphBotError):
    """Rendering backend credentials could not be loaded or are ambiguous."""


class NotFoundError(GraphBotError):
    """No dashboard is registered under the requested name."""


class InvalidTimeRangeError(GraphBotError):
    """A relative time token does not match the accepted syntax."""


class VerificationError(GraphBotError):
    """The inbound request's signing headers are missing or malformed."""


class RenderError(GraphBotError):
    """The rendering backend call failed."""


class UploadError(GraphBotError):
    """Uploading the rendered image to Slack failed."""
