from typing import Optional


class StudyCardsError(Exception):
    """Base exception for all studycards errors."""

    pass


class ValidationError(StudyCardsError):
    """Raised when a required field is missing or a field value is invalid."""

    pass


class NotFoundError(StudyCardsError):
    """Raised when a referenced entity does not exist."""

    pass


class ConflictError(StudyCardsError):
    """Raised when an operation would violate a data model invariant,
    e.g. deleting a folder that still owns decks."""

    pass


class StorageError(StudyCardsError):
    """Base exception for storage backend failures."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class StorageConnectionError(StorageError):
    """Raised for errors connecting to the persistent backend."""

    pass


class SchemaInitializationError(StorageError):
    """Raised for errors during schema setup."""

    pass


class MarshallingError(StorageError):
    """Indicates an error during data conversion between application models
    and stored documents."""

    pass


class TextIndexUnavailableError(StorageError):
    """Raised when the backend cannot serve indexed text search."""

    pass


class StoreError(StudyCardsError):
    """Raised by the client store when an API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
