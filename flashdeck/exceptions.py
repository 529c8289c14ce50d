from typing import Optional


class FlashdeckError(Exception):
    """Base exception for all flashdeck errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class ValidationError(FlashdeckError):
    """Raised for empty or invalid user-supplied text."""

    pass


class InvalidRatingError(ValidationError, ValueError):
    """Raised when a rating is outside of again/good/easy."""

    pass


class NotFoundError(FlashdeckError):
    """Raised when an operation references a deck or card that is gone."""

    pass


class DeckNotFoundError(NotFoundError):
    """Raised when a specified deck is not found."""

    pass


class CardNotFoundError(NotFoundError):
    """Raised when a specified card is not found in its deck."""

    pass


class PersistenceError(FlashdeckError):
    """Raised when the underlying key-value store cannot be read or written."""

    pass


class GenerationError(FlashdeckError):
    """Raised when an external content source fails or returns bad data.

    ``deck_id`` names the partially populated deck that was kept, if any, and
    ``created`` is the number of cards that made it into it.
    """

    def __init__(
        self,
        message: str,
        original_exception: Optional[Exception] = None,
        deck_id: Optional[str] = None,
        created: int = 0,
    ):
        super().__init__(message, original_exception=original_exception)
        self.deck_id = deck_id
        self.created = created


class GenerationInProgressError(GenerationError):
    """Raised when a generation request for the same trigger is still pending."""

    pass
