"""
Calculate Solidity storage slots

For a state variable at slot p:
  struct member m        -> p + m.slot, offset m.offset
  mapping key k          -> keccak256(abi.encode(k, p))
  mapping string/bytes k -> keccak256(k ++ bytes32(p))
  dynamic array data     -> keccak256(abi.encode(p)), length stored at p
  bytes/string data      -> keccak256(abi.encode(p)) when longer than 31 bytes
  fixed array index i    -> p + i // (32 // size), offset (i % (32 // size)) * size

All slot numbers are plain Python ints (unbounded), never truncated.
"""

from dataclasses import dataclass, replace
from typing import Any, Tuple, Union

from eth_abi import encode, is_encodable_type
from eth_abi.exceptions import EncodingError
from eth_utils import is_hex, keccak, to_bytes, to_checksum_address

from .errors import InvalidKeyError, NotFoundError, SchemaError, UnsupportedTypeError
from .layout import StorageLayout, TypeDescriptor
from .solidity_data import slots_for_array_index

BlockIdentifier = Union[int, str]

SLOT_MODULUS = 1 << 256


@dataclass(frozen=True)
class NavigationState:
    """Where a cursor points: an absolute slot, a byte offset inside it and the type stored there"""
    slot: int
    offset: int
    type_id: str
    address: str
    block: BlockIdentifier = "latest"


def int_to_bytes32(value: int) -> bytes:
    """Convert a slot number to its 32-byte big-endian representation"""
    if value < 0 or value >= SLOT_MODULUS:
        raise SchemaError(f"Slot {value} is outside the 256-bit slot space")
    return value.to_bytes(32, byteorder="big")


def data_slot(slot: int) -> int:
    """First data slot of a dynamic array or long bytes value stored at `slot`"""
    return int.from_bytes(keccak(encode(["uint256"], [slot])), "big")


def normalize_key_type(key_type_id: str) -> str:
    """
    Turn a mapping key type id into an ABI type name.

    t_address -> address, t_contract(IERC20)1234 -> address,
    t_enum(Status)12 -> uint8, t_string_memory_ptr -> string
    """
    key_type = key_type_id[2:] if key_type_id.startswith("t_") else key_type_id
    if "contract" in key_type or key_type.startswith("address"):
        return "address"
    if "enum" in key_type:
        return "uint8"
    if key_type.startswith("string"):
        return "string"
    if key_type.startswith("bytes_"):
        return "bytes"
    return key_type


def parse_int(text: str) -> int:
    """Decimal, or hex with a 0x prefix; leading zeros are fine in both"""
    text = text.strip()
    if text.lower().lstrip("-").startswith("0x"):
        return int(text, 16)
    return int(text, 10)


def coerce_key(key_type: str, key: Any) -> Any:
    if key_type == "string":
        if isinstance(key, str):
            return key.encode("utf-8")
        if isinstance(key, (bytes, bytearray)):
            return bytes(key)
        raise InvalidKeyError(f"Invalid string key {key!r}")

    if key_type == "bytes":
        if isinstance(key, str):
            try:
                return to_bytes(hexstr=key)
            except ValueError as e:
                raise InvalidKeyError(f"Invalid bytes key {key!r}, expected hex") from e
        if isinstance(key, (bytes, bytearray)):
            return bytes(key)
        raise InvalidKeyError(f"Invalid bytes key {key!r}")

    if key_type == "address":
        if isinstance(key, (bytes, bytearray)):
            key = "0x" + bytes(key).hex()
        try:
            return to_checksum_address(key)
        except (TypeError, ValueError) as e:
            raise InvalidKeyError(f"Invalid address key {key!r}") from e

    if key_type.startswith(("uint", "int")) or key_type == "bool":
        if isinstance(key, str):
            try:
                key = parse_int(key)
            except ValueError as e:
                raise InvalidKeyError(f"Invalid {key_type} key {key!r}") from e
        if key_type == "bool":
            return bool(key)
        return key

    if key_type.startswith("bytes"):
        if isinstance(key, str):
            if not is_hex(key):
                raise InvalidKeyError(f"Invalid {key_type} key {key!r}")
            return to_bytes(hexstr=key)
        return key

    return key


def mapping_slot(key: Any, base_slot: int, key_type: str = "uint256") -> int:
    """
    Calculate the storage slot of a mapping value.

    Args:
        key: The mapping key
        base_slot: The slot of the mapping itself
        key_type: ABI type of the key (see normalize_key_type)

    Returns:
        The storage slot as an int
    """
    if key_type in ("string", "bytes"):
        key_bytes = coerce_key(key_type, key)
        return int.from_bytes(keccak(key_bytes + int_to_bytes32(base_slot)), "big")

    if not is_encodable_type(key_type):
        raise UnsupportedTypeError(f"Unsupported mapping key type `{key_type}`")

    value = coerce_key(key_type, key)
    try:
        encoded = encode([key_type, "uint256"], [value, base_slot])
    except (EncodingError, TypeError, ValueError) as e:
        raise InvalidKeyError(f"Cannot encode {key!r} as {key_type}: {e}") from e
    return int.from_bytes(keccak(encoded), "big")


def struct_field(state: NavigationState, type_: TypeDescriptor, name: str) -> NavigationState:
    field = type_.member(name)
    slot = (state.slot + field.slot) % SLOT_MODULUS
    return replace(state, slot=slot, offset=field.offset, type_id=field.type)


def mapping_key(state: NavigationState, type_: TypeDescriptor, key: Any) -> NavigationState:
    key_type = normalize_key_type(type_.key)
    slot = mapping_slot(key, state.slot, key_type)
    return replace(state, slot=slot, offset=0, type_id=type_.value)


def array_index(state: NavigationState, type_: TypeDescriptor, index: int, layout: StorageLayout) -> NavigationState:
    if isinstance(index, str):
        try:
            index = parse_int(index)
        except ValueError:
            raise NotFoundError(f"Array index must be an integer, got {index!r}") from None
    if isinstance(index, bool) or not isinstance(index, int):
        raise NotFoundError(f"Array index must be an integer, got {index!r}")
    if index < 0:
        raise NotFoundError(f"Array index must not be negative, got {index}")

    element_size = layout.element_size(type_.base)
    if type_.is_dynamic_array:
        start = data_slot(state.slot)
    else:
        length = type_.fixed_length
        if index >= length:
            raise NotFoundError(f"Index {index} is out of range for `{type_.label}`")
        start = state.slot

    relative_slot, offset = slots_for_array_index(index, element_size)
    slot = (start + relative_slot) % SLOT_MODULUS
    return replace(state, slot=slot, offset=offset, type_id=type_.base)


def next_state(layout: StorageLayout, state: NavigationState, segment: Tuple[str, Any]) -> NavigationState:
    """
    Compute the position reached by one path segment.

    Args:
        layout: The storage layout
        state: The current position
        segment: ("field", name), ("key", key) or ("index", i)

    Returns:
        A new NavigationState; `state` is left untouched
    """
    kind, value = segment
    type_ = layout.lookup(state.type_id)

    if kind == "field":
        if not type_.is_struct:
            raise NotFoundError(f"Cannot access member `{value}` of non-struct `{type_.label}`")
        return struct_field(state, type_, value)
    if kind == "key":
        if not type_.is_mapping:
            raise NotFoundError(f"Cannot look up key {value!r} in non-mapping `{type_.label}`")
        return mapping_key(state, type_, value)
    if kind == "index":
        if not type_.is_array:
            raise NotFoundError(f"Cannot index into non-array `{type_.label}`")
        return array_index(state, type_, value, layout)
    raise ValueError(f"Unknown path segment kind `{kind}`")
