"""Error kinds raised by the token-scoped storage core."""


class StorageError(Exception):
    """Base class for every error the storage core raises."""


class PersistenceUnavailable(StorageError):
    """The token database or the file store could not be used."""


class NamespaceNotFound(StorageError):
    """No namespace exists for the given token."""


class EntryNotFound(StorageError):
    """The namespace has no entry with the given name."""


class UnsafeName(StorageError):
    """A token or entry name would resolve outside its storage root."""


class IdentityUnknown(StorageError):
    """The identity has never been registered."""


class InvalidShare(StorageError):
    """A share request carried no files."""
