"""Exception taxonomy for analysis, casting and generation."""


class StorycastError(Exception):
    """Base class for all storycast errors."""


class RateLimitError(StorycastError):
    """The provider rejected a request because the credential is over quota."""


class SynthesisError(StorycastError):
    """A single synthesis call failed in a way that is not worth retrying."""


class NoCredentialsError(StorycastError):
    """The credential pool is empty, so no request can ever be made."""


class GenerationError(StorycastError):
    """A generation run produced no audio at all."""


class AnalysisError(StorycastError):
    """The analysis provider failed or returned an unusable script."""


class CastingError(StorycastError):
    """Voices cannot be assigned (e.g. the voice catalog is empty)."""


class InvalidTransition(StorycastError):
    """The pipeline was asked to move between stages in an illegal order."""
