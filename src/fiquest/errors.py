class FiquestError(Exception):
    """Base error for FIQuest domain exceptions."""


class ImportValidationError(FiquestError):
    """Raised when an import payload is malformed or incompatible."""


class ProfileValidationError(ImportValidationError):
    """Raised when a profile dict cannot be turned into a PlayerProfile."""


class DecodeError(FiquestError):
    """Raised when an obfuscated payload cannot be reversed."""


class StorageError(FiquestError):
    """Raised when the key/value store rejects a read or write."""


class StorageQuotaExceededError(StorageError):
    """Raised when a write would push the store past its capacity."""


class UnsupportedFormatError(FiquestError):
    """Raised when an export is requested in a format we cannot produce."""


class NoActivePlayerError(FiquestError):
    """Raised when an operation needs a logged-in player and none is loaded."""


class EntryValidationError(FiquestError):
    """Raised when net-worth entry data has the wrong shape."""


class DeliveryError(FiquestError):
    """Raised by a delivery host when one of its primitives is unavailable."""
