"""Exception taxonomy for the pipeline and its generative clients."""

from __future__ import annotations


class AutocineError(Exception):
    """Base class for every error raised by this package."""


# ---------- Client boundary ----------


class GenerativeError(AutocineError):
    """A generative call failed (transport, HTTP status, or empty reply)."""


class ExtractionFailure(GenerativeError):
    """The reply arrived but no usable URL could be extracted from it."""


class MissingCredentialsError(GenerativeError):
    """The real client was asked to call out without an API key."""


# ---------- Stage failures (always recovered locally) ----------


class PlanningFailure(AutocineError):
    """Script planning failed; the demo script is used instead."""


class ScriptParseError(PlanningFailure):
    """The planner's output could not be parsed into a Script."""


class AssetResolutionFailure(AutocineError):
    """A character/environment image could not be generated."""


class CompositionFailure(AutocineError):
    """A scene frame could not be generated."""


class VideoFailure(AutocineError):
    """A scene clip could not be generated."""


# ---------- Control errors surfaced to callers ----------


class RunInProgressError(AutocineError):
    """A full run was requested while another one is still running."""


class SceneNotFoundError(AutocineError, KeyError):
    """An ad-hoc operation referenced a scene the current script lacks."""


class AssetNotFoundError(AutocineError, KeyError):
    """A re-resolve or catalog operation referenced an unknown id."""
