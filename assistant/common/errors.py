"""
Error taxonomy for the portfolio assistant.

Only CorruptIndex is fatal, and only to retrieval: the orchestrator reports
itself not-ready and answers from tools alone. Every other error is caught
at a stage boundary and turned into a fallback decision.
"""


class AssistantError(Exception):
    """Base class for assistant errors."""
    pass


class CorruptIndex(AssistantError):
    """Index assets failed to load or failed structural validation."""
    pass


class EmbeddingFailure(AssistantError):
    """The embedding service could not vectorize the query."""
    pass


class CompletionFailure(AssistantError):
    """The chat-completion service call failed or returned nothing usable."""
    pass


class UnknownTool(AssistantError):
    """A tool name outside the registry was requested."""

    def __init__(self, name: str):
        super().__init__(f'Tool "{name}" not available.')
        self.name = name


class StorageUnavailable(AssistantError):
    """Session-summary persistence failed."""
    pass
