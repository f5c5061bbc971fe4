"""Persistence: key/value store, save-file envelope, obfuscation and import/export."""

from .codec import EXPORT_VERSION, ExportEnvelope
from .obfuscation import deobfuscate, obfuscate
from .store import JsonFileStore, KeyValueStore, MemoryStore
from .transfer import DataTransfer, ImportResult

__all__ = [
    "EXPORT_VERSION",
    "ExportEnvelope",
    "deobfuscate",
    "obfuscate",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "DataTransfer",
    "ImportResult",
]
