"""Error taxonomy shared by every layer."""


class CardwiseError(Exception):
    """Base class for all cardwise errors."""


class InvalidInput(CardwiseError):
    """A caller passed a value outside the documented contract."""


class SessionStateError(InvalidInput):
    """An operation was attempted in a review phase that does not allow it."""


class PersistenceFailure(CardwiseError):
    """The storage collaborator rejected a write."""


class SpeechUnavailable(CardwiseError):
    """Text-to-speech is not supported or failed to start."""
