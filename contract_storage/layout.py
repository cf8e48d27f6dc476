"""
In-memory model of a compiler storage layout report

solc --storage-layout emits:

  {
    "storage": [{"label": "s", "slot": "0", "offset": 0, "type": "t_struct(AppStorage)123_storage"}],
    "types": {
      "t_uint256": {"encoding": "inplace", "label": "uint256", "numberOfBytes": "32"},
      ...
    }
  }

Slots and sizes arrive as decimal strings and are normalised to int here.
Nothing in this module is mutated after construction.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import NotFoundError, SchemaError

SLOT_SIZE = 32

ENCODINGS = ("inplace", "mapping", "dynamic_array", "bytes")

_ARRAY_LENGTH = re.compile(r"\[(\d*)\]$")


@dataclass(frozen=True)
class Member:
    """A struct member: slot is relative to the start of the struct"""
    label: str
    type: str
    slot: int
    offset: int


@dataclass(frozen=True)
class StorageVariable:
    """A top-level state variable"""
    label: str
    type: str
    slot: int
    offset: int = 0


@dataclass(frozen=True)
class TypeDescriptor:
    id: str
    label: str
    encoding: str
    number_of_bytes: int
    base: Optional[str] = None
    key: Optional[str] = None
    value: Optional[str] = None
    members: Optional[Tuple[Member, ...]] = None

    @property
    def is_struct(self) -> bool:
        return self.members is not None

    @property
    def is_mapping(self) -> bool:
        return self.encoding == "mapping"

    @property
    def is_dynamic_array(self) -> bool:
        return self.encoding == "dynamic_array"

    @property
    def is_bytes(self) -> bool:
        return self.encoding == "bytes"

    @property
    def is_fixed_array(self) -> bool:
        return self.encoding == "inplace" and self.base is not None

    @property
    def is_array(self) -> bool:
        return self.is_fixed_array or self.is_dynamic_array

    @property
    def is_scalar(self) -> bool:
        """True for value types that decode from a single window of one slot"""
        return (
            self.encoding == "inplace"
            and self.base is None
            and self.members is None
        )

    @property
    def fixed_length(self) -> int:
        """Declared length of a fixed-size array, taken from the outermost [N] of the label"""
        match = _ARRAY_LENGTH.search(self.label)
        if not self.is_fixed_array or not match or not match.group(1):
            raise SchemaError(f"Type `{self.id}` ({self.label}) is not a fixed-size array")
        return int(match.group(1))

    def member(self, label: str) -> Member:
        if self.members is None:
            raise SchemaError(f"Type `{self.id}` ({self.label}) is not a struct")
        for field in self.members:
            if field.label == label:
                return field
        raise NotFoundError(
            f"Unrecognized property `{label}` on `{self.id}`. "
            "Please check the supplied storage layout file."
        )


def _to_int(value: Any, what: str) -> int:
    if isinstance(value, bool):
        raise SchemaError(f"Invalid {what}: {value!r}")
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        raise SchemaError(f"Invalid {what}: {value!r}") from None


def _parse_type(type_id: str, entry: Dict[str, Any]) -> TypeDescriptor:
    if not isinstance(entry, dict):
        raise SchemaError(f"Type `{type_id}` must be an object, got {type(entry).__name__}")
    try:
        label = entry["label"]
        encoding = entry["encoding"]
        number_of_bytes = _to_int(entry["numberOfBytes"], f"numberOfBytes of `{type_id}`")
    except KeyError as e:
        raise SchemaError(f"Type `{type_id}` is missing {e}") from None

    if encoding not in ENCODINGS:
        raise SchemaError(f"Type `{type_id}` has unknown encoding `{encoding}`")

    members = None
    if entry.get("members") is not None:
        try:
            members = tuple(
                Member(
                    label=m["label"],
                    type=m["type"],
                    slot=_to_int(m["slot"], f"slot of `{type_id}.{m['label']}`"),
                    offset=_to_int(m.get("offset", 0), f"offset of `{type_id}.{m['label']}`"),
                )
                for m in entry["members"]
            )
        except KeyError as e:
            raise SchemaError(f"Member of `{type_id}` is missing {e}") from None

    if encoding == "mapping" and (entry.get("key") is None or entry.get("value") is None):
        raise SchemaError(f"Mapping type `{type_id}` must declare key and value")
    if encoding == "dynamic_array" and entry.get("base") is None:
        raise SchemaError(f"Dynamic array type `{type_id}` must declare base")

    return TypeDescriptor(
        id=type_id,
        label=label,
        encoding=encoding,
        number_of_bytes=number_of_bytes,
        base=entry.get("base"),
        key=entry.get("key"),
        value=entry.get("value"),
        members=members,
    )


class StorageLayout:
    """
    Type table plus top-level variable list of one contract version.

    Lookups are read-only, so one instance can back any number of cursors.
    """

    def __init__(self, types: Mapping[str, TypeDescriptor], storage: Tuple[StorageVariable, ...]):
        self._types = MappingProxyType(dict(types))
        self._storage = tuple(storage)
        self._by_label = MappingProxyType({v.label: v for v in self._storage})

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageLayout":
        """
        Build a layout from a parsed storage layout report.

        Args:
            data: Either {"storage": [...], "types": {...}} or compiler output
                  holding that object under "storageLayout"

        Returns:
            StorageLayout
        """
        if not isinstance(data, dict):
            raise SchemaError("Storage layout must be a JSON object")
        if "storage" not in data and isinstance(data.get("storageLayout"), dict):
            data = data["storageLayout"]
        if "storage" not in data:
            raise SchemaError("Storage layout is missing `storage`")

        types = {
            type_id: _parse_type(type_id, entry)
            for type_id, entry in (data.get("types") or {}).items()
        }

        storage = []
        for entry in data["storage"] or []:
            try:
                storage.append(StorageVariable(
                    label=entry["label"],
                    type=entry["type"],
                    slot=_to_int(entry["slot"], f"slot of `{entry['label']}`"),
                    offset=_to_int(entry.get("offset", 0), f"offset of `{entry['label']}`"),
                ))
            except KeyError as e:
                raise SchemaError(f"Storage entry is missing {e}") from None

        return cls(types, tuple(storage))

    @property
    def types(self) -> Mapping[str, TypeDescriptor]:
        return self._types

    @property
    def storage(self) -> Tuple[StorageVariable, ...]:
        return self._storage

    def lookup(self, type_id: str) -> TypeDescriptor:
        try:
            return self._types[type_id]
        except KeyError:
            raise SchemaError(f"Type `{type_id}` is referenced but not defined in the storage layout") from None

    def top_level_field(self, label: str) -> StorageVariable:
        try:
            return self._by_label[label]
        except KeyError:
            raise NotFoundError(
                f"Unrecognized top-level property `{label}`. "
                "Please check the supplied storage layout file."
            ) from None

    def element_size(self, type_id: str) -> int:
        """numberOfBytes of the given type"""
        return self.lookup(type_id).number_of_bytes


def load_layout(path: Union[str, Path]) -> StorageLayout:
    """Load a storage layout report from a JSON file"""
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SchemaError(f"Storage layout {path} is not valid JSON: {e}") from e
    return StorageLayout.from_dict(data)
