"""Read and decode contract storage using a compiler storage layout"""

from .contracts import ContractCache
from .cursor import ContractStorage, Cursor, parse_path
from .errors import (
    ContractStorageError,
    InvalidKeyError,
    NotFoundError,
    SchemaError,
    StorageIOError,
    UnsupportedTypeError,
)
from .layout import Member, StorageLayout, StorageVariable, TypeDescriptor, load_layout
from .providers import RetryingStorageProvider, StorageProvider, Web3StorageProvider, connect, retryable
from .slots import NavigationState, data_slot, mapping_slot

__all__ = [
    "ContractCache",
    "ContractStorage",
    "ContractStorageError",
    "Cursor",
    "InvalidKeyError",
    "Member",
    "NavigationState",
    "NotFoundError",
    "RetryingStorageProvider",
    "SchemaError",
    "StorageIOError",
    "StorageLayout",
    "StorageProvider",
    "StorageVariable",
    "TypeDescriptor",
    "UnsupportedTypeError",
    "Web3StorageProvider",
    "connect",
    "data_slot",
    "load_layout",
    "mapping_slot",
    "parse_path",
    "retryable",
]
