"""Error taxonomy for generation and playback."""


class AniFlowError(Exception):
    """Base class for all AniFlow errors."""


class PreconditionError(AniFlowError):
    """A request was rejected before any external call was issued."""


class GenerationError(AniFlowError):
    """An external generation call failed."""


class EmptyPayloadError(GenerationError):
    """The collaborator answered but returned no artifact payload."""


class AuthorizationError(GenerationError):
    """The collaborator rejected our credentials; re-authenticate and retry."""

    user_message = "API key invalid or expired. Please re-select key and try again."


class GenerationTimeoutError(GenerationError):
    """A long-running generation job did not finish within its wait budget."""


class StoryGenerationError(AniFlowError):
    """The story collaborator failed to produce a usable project."""
