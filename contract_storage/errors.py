"""
Errors raised while navigating and decoding contract storage.

Schema, lookup and key errors come from the caller's own input and are raised
as soon as a path is built. Read failures only ever surface from resolve().
"""


class ContractStorageError(Exception):
    """Base class for every error raised by this package"""


class SchemaError(ContractStorageError):
    """The storage layout is malformed or references a type it does not define"""


class UnsupportedTypeError(ContractStorageError):
    """A type label does not match any decodable Solidity type"""


class NotFoundError(ContractStorageError, LookupError):
    """A struct member, top-level variable or path segment does not exist"""


class InvalidKeyError(ContractStorageError, ValueError):
    """A mapping key value cannot be encoded as the mapping's key type"""


class StorageIOError(ContractStorageError, OSError):
    """Reading a raw storage word failed or timed out"""
