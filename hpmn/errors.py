"""Error taxonomy shared by the pipeline stages."""


class HPMNError(Exception):
    """Base class for all errors raised by hpmn."""


class ConfigurationError(HPMNError):
    """A required setting, prompt template or collaborator is missing."""


class UnsupportedProviderError(HPMNError):
    """The requested model provider is absent or not supported."""


class OutputParseError(HPMNError):
    """A structured-output response did not match the expected shape.

    The raw model text is kept on ``raw`` for logging; it is never shown
    to the end user.
    """

    def __init__(self, message: str, raw: str = "") -> None:
        super().__init__(message)
        self.raw = raw


class NotFoundError(HPMNError):
    """An action or conversation could not be found."""


class RemoteCallError(HPMNError):
    """A webhook, model provider or collaborator transport call failed."""
