"""
Decode raw storage words into Python values

Storage packs value types right to left: the first variable of a slot sits in
the lowest-order bytes. A variable of `size` bytes at in-slot `offset` is
therefore bytes [32 - offset - size, 32 - offset) of the big-endian word.

  slot 8 of a UniswapV2 pair:  | timestamp (4) | reserve1 (14) | reserve0 (14) |
                                offset 28        offset 14       offset 0
"""

import math
import re
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from eth_utils import to_bytes, to_checksum_address

from .errors import SchemaError, StorageIOError, UnsupportedTypeError
from .layout import SLOT_SIZE, StorageLayout, TypeDescriptor

_INT_LABEL = re.compile(r"^(u)?(int|bytes)(\d+)(?:\[(\d*)\])*$")


class TypeLabel(NamedTuple):
    is_unsigned: bool
    data_type: str      # "int" or "bytes"
    data_size_bits: int
    array_size: Optional[int]


def pad_slot(raw: Union[bytes, str, int]) -> bytes:
    """
    Normalise a raw storage value to exactly 32 bytes.

    Providers may omit leading zero bytes ("0x1", b"\\x01"). Every offset
    computed in this module counts from the low-order end of a full word,
    so the value must be left-padded before any window is taken.
    """
    if isinstance(raw, int) and not isinstance(raw, bool):
        if raw < 0 or raw >= 2 ** 256:
            raise StorageIOError(f"Storage value out of range: {raw}")
        return raw.to_bytes(SLOT_SIZE, "big")
    if isinstance(raw, str):
        try:
            raw = to_bytes(hexstr=raw)
        except ValueError as e:
            raise StorageIOError(f"Storage value is not hex: {raw!r}") from e
    elif isinstance(raw, (bytes, bytearray)):
        raw = bytes(raw)
    else:
        raise StorageIOError(f"Unexpected storage value type {type(raw).__name__}")

    if len(raw) > SLOT_SIZE:
        raise StorageIOError(f"Storage value is {len(raw)} bytes, expected at most {SLOT_SIZE}")
    return raw.rjust(SLOT_SIZE, b"\x00")


def get_storage_bytes(word: bytes, offset: int, size: int) -> bytes:
    """
    Get the bytes of one packed variable.

    Args:
        word: A full 32-byte storage word (see pad_slot)
        offset: Position of the variable in its slot, counted from the low-order end
        size: Size of the variable in bytes

    Returns:
        The `size` bytes of the variable, big-endian
    """
    if len(word) != SLOT_SIZE:
        raise StorageIOError(f"Storage word must be {SLOT_SIZE} bytes, got {len(word)}")
    if offset < 0 or size <= 0 or offset + size > SLOT_SIZE:
        raise SchemaError(f"Window of {size} bytes at offset {offset} does not fit in one slot")
    lower = SLOT_SIZE - offset - size
    return word[lower:lower + size]


def slots_for_array_index(index: int, element_size: int) -> Tuple[int, int]:
    """
    For the requested array index, determine where the element is stored.

    Elements never straddle a slot boundary: small elements are packed
    floor(32 / size) to a slot, and elements larger than a slot start on a
    fresh slot and take ceil(size / 32) slots each.

    Returns:
        (slot relative to the start of the array data, byte offset in that slot)
    """
    if element_size <= 0:
        raise SchemaError(f"Array element size must be positive, got {element_size}")
    if index < 0:
        raise SchemaError(f"Array index must not be negative, got {index}")
    if element_size <= SLOT_SIZE:
        elements_per_slot = SLOT_SIZE // element_size
        return index // elements_per_slot, (index % elements_per_slot) * element_size
    return index * math.ceil(element_size / SLOT_SIZE), 0


def slots_for_array_length(length: int, element_size: int) -> int:
    """Number of slots occupied by `length` packed elements"""
    if length <= 0:
        return 0
    last_slot, _ = slots_for_array_index(length - 1, element_size)
    return last_slot + math.ceil(element_size / SLOT_SIZE)


def from_twos_complement(value: int, bits: int) -> int:
    if value >= 1 << (bits - 1):
        return value - (1 << bits)
    return value


def to_twos_complement(value: int, bits: int) -> int:
    if not -(1 << (bits - 1)) <= value < (1 << bits):
        raise ValueError(f"{value} does not fit in {bits} bits")
    return value & ((1 << bits) - 1)


def decode_type_label(type_: TypeDescriptor, layout: Optional[StorageLayout] = None) -> TypeLabel:
    """
    Decode a type label such as int8, uint256, bytes4 or uint256[4].

    For arrays the element size comes from the base type in the layout rather
    than from the label, so arrays of enums or structs still report a size.
    """
    if type_.label.startswith("enum "):
        return TypeLabel(True, "int", type_.number_of_bytes * 8, None)

    match = _INT_LABEL.match(type_.label)
    if not match:
        raise UnsupportedTypeError(f"Unsupported data type found: {type_.label}")

    if type_.base is not None and layout is not None:
        data_size_bits = layout.element_size(type_.base) * 8
    elif match.group(2) == "bytes":
        data_size_bits = int(match.group(3)) * 8
    else:
        data_size_bits = int(match.group(3))
    array_size = match.group(4)
    return TypeLabel(
        is_unsigned=match.group(1) == "u",
        data_type=match.group(2),
        data_size_bits=data_size_bits,
        array_size=int(array_size) if array_size else None,
    )


def decode_scalar(data: bytes, type_: TypeDescriptor) -> Any:
    """
    Decode the window of a single value type.

    Returns bool for bool, a checksummed address for address/contract types,
    a 0x hex string for bytesN and an int for (u)intN and enums.
    """
    if not type_.is_scalar:
        raise SchemaError(f"Type `{type_.id}` ({type_.label}) is not a single value type")

    label = type_.label
    if label == "bool":
        return any(data)
    if label in ("address", "address payable") or label.startswith("contract "):
        return to_checksum_address("0x" + data.hex())
    if label.startswith("enum "):
        return int.from_bytes(data, "big")

    is_unsigned, data_type, bits, _ = decode_type_label(type_)
    if data_type == "bytes":
        return "0x" + data.hex()
    value = int.from_bytes(data, "big")
    if is_unsigned:
        return value
    return from_twos_complement(value, bits)


def is_out_of_place(type_: TypeDescriptor, layout: StorageLayout) -> bool:
    """True when a value of this type (or every element of it) lives outside its declared slots"""
    if type_.is_mapping or type_.is_dynamic_array or type_.is_bytes:
        return True
    if type_.is_fixed_array:
        return is_out_of_place(layout.lookup(type_.base), layout)
    return False


def decode_value(words: Sequence[bytes], offset: int, type_: TypeDescriptor, layout: StorageLayout) -> Any:
    """Decode any in-place type starting at `offset` of words[0]"""
    if type_.is_scalar:
        return decode_scalar(get_storage_bytes(words[0], offset, type_.number_of_bytes), type_)
    if type_.is_struct:
        return decode_struct(words, type_, layout)
    if type_.is_fixed_array:
        return decode_sequence(words, type_, layout)
    raise UnsupportedTypeError(
        f"`{type_.label}` is stored out of place and cannot be decoded from the enclosing slots"
    )


def decode_sequence(
    words: Sequence[bytes],
    type_: TypeDescriptor,
    layout: StorageLayout,
    length: Optional[int] = None,
) -> List[Any]:
    """
    Decode the elements of an array from its contiguous data slots.

    Args:
        words: The array's data slots in storage order, each 32 bytes
        type_: The array type
        layout: Layout used to look up the element type
        length: Number of elements, required for dynamic arrays

    Returns:
        Elements in index order
    """
    if not type_.is_array:
        raise SchemaError(f"Type `{type_.id}` ({type_.label}) is not an array")
    base = layout.lookup(type_.base)
    if is_out_of_place(base, layout):
        raise UnsupportedTypeError(f"Cannot decode `{type_.label}` as a whole: elements are `{base.label}`")
    if length is None:
        length = type_.fixed_length

    element_size = base.number_of_bytes
    slots_per_element = math.ceil(element_size / SLOT_SIZE)
    needed = slots_for_array_length(length, element_size)
    if len(words) < needed:
        raise SchemaError(f"`{type_.label}` of length {length} needs {needed} slots, got {len(words)}")

    result = []
    for i in range(length):
        slot, offset = slots_for_array_index(i, element_size)
        result.append(decode_value(words[slot:slot + slots_per_element], offset, base, layout))
    return result


def decode_struct(words: Sequence[bytes], type_: TypeDescriptor, layout: StorageLayout) -> Dict[str, Any]:
    """
    Decode a struct from its contiguous slots.

    Members stored out of place (mappings, dynamic arrays, bytes, string and
    fixed arrays of those) are left out; navigate to them explicitly.
    """
    if not type_.is_struct:
        raise SchemaError(f"Type `{type_.id}` ({type_.label}) is not a struct")

    result = {}
    for member in type_.members:
        member_type = layout.lookup(member.type)
        if is_out_of_place(member_type, layout):
            continue
        span = math.ceil(member_type.number_of_bytes / SLOT_SIZE)
        sub = words[member.slot:member.slot + span]
        if len(sub) < span:
            raise SchemaError(f"Member `{member.label}` of `{type_.label}` lies outside the struct's slots")
        result[member.label] = decode_value(sub, member.offset, member_type, layout)
    return result


def decode_bytes_header(word: bytes) -> Tuple[int, bool]:
    """
    Read the length of a bytes/string value from its main slot.

    Short values (up to 31 bytes) live in the slot itself, left-aligned, with
    length * 2 in the lowest byte. Long values store length * 2 + 1 and keep
    their data from keccak256(slot) onward.

    Returns:
        (length in bytes, True if the data is stored out of place)
    """
    value = int.from_bytes(word, "big")
    if value & 1:
        return (value - 1) // 2, True
    length = word[-1] // 2
    if length > SLOT_SIZE - 1:
        raise SchemaError(f"Invalid short bytes length {length} in word 0x{word.hex()}")
    return length, False


def decode_bytes(data: bytes, type_: TypeDescriptor) -> str:
    """string decodes as text, bytes as a 0x hex string"""
    if not type_.is_bytes:
        raise SchemaError(f"Type `{type_.id}` ({type_.label}) is not bytes or string")
    if type_.label.startswith("string"):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return "0x" + data.hex()
    return "0x" + data.hex()
