class ObjectStoreError(Exception):
    """Base class for errors raised by the versioning engine."""


class InvalidInput(ObjectStoreError):
    """A write or read argument failed validation before reaching the store."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFound(ObjectStoreError):
    """No record satisfies the requested lookup."""


class InvalidCursor(ObjectStoreError):
    """A pagination cursor could not be decoded."""


class StoreUnavailable(ObjectStoreError):
    """The record store could not complete an operation."""
