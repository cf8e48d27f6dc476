"""
Lazily navigate contract storage much like one would in solidity.

  beanstalk = ContractStorage(provider, BEANSTALK, layout)
  pods = await beanstalk.var("s").field("a").key(account).field("field").field("plots").key(index).resolve()
  pods = await beanstalk.path("s.a[0x4Fea...].field.plots[949411235551363]").resolve()

Building a path never touches the network; only resolve() reads storage.
"""

import logging
import math
import re
from dataclasses import replace
from typing import Any, Dict, List, Tuple, Union

from .errors import ContractStorageError, NotFoundError, SchemaError, StorageIOError, UnsupportedTypeError
from .layout import SLOT_SIZE, StorageLayout, TypeDescriptor
from .providers import StorageProvider
from .slots import SLOT_MODULUS, BlockIdentifier, NavigationState, data_slot, next_state
from .solidity_data import (
    decode_bytes,
    decode_bytes_header,
    decode_scalar,
    decode_sequence,
    decode_struct,
    get_storage_bytes,
    is_out_of_place,
    pad_slot,
    slots_for_array_length,
)

logger = logging.getLogger(__name__)

_NAME = re.compile(r"[A-Za-z_$][\w$]*")
_BRACKET = re.compile(r"\[([^\]]*)\]")


def parse_path(expr: str) -> List[Tuple[str, str]]:
    """
    Split a storage path into ("name", label) and ("bracket", text) segments.

    "s.a[0xabc].plots[3]" -> [("name", "s"), ("name", "a"), ("bracket", "0xabc"),
                               ("name", "plots"), ("bracket", "3")]
    """
    segments = []
    pos = 0
    while pos < len(expr):
        if expr[pos] == "[":
            match = _BRACKET.match(expr, pos)
            if not match:
                raise NotFoundError(f"Unterminated `[` at position {pos} of path `{expr}`")
            text = match.group(1).strip().strip("'\"")
            if not text:
                raise NotFoundError(f"Empty `[]` at position {pos} of path `{expr}`")
            segments.append(("bracket", text))
        else:
            start = pos + 1 if expr[pos] == "." and segments else pos
            match = _NAME.match(expr, start)
            if not match or (start == pos and segments):
                raise NotFoundError(f"Unexpected `{expr[pos]}` at position {pos} of path `{expr}`")
            segments.append(("name", match.group(0)))
        pos = match.end()
    if not segments:
        raise NotFoundError("Empty storage path")
    return segments


def _follow(cursor: "Cursor", segments: List[Tuple[str, str]]) -> "Cursor":
    for kind, text in segments:
        if kind == "name":
            cursor = cursor.field(text)
        elif cursor.type.is_mapping:
            cursor = cursor.key(text)
        else:
            cursor = cursor.index(text)
    return cursor


class Cursor:
    """
    A position in a contract's storage.

    field(), key(), index() and at_block() return new cursors and never read
    storage; schema problems raise immediately. resolve() performs the reads.
    """

    def __init__(self, layout: StorageLayout, provider: StorageProvider, state: NavigationState, path: str = ""):
        self._layout = layout
        self._provider = provider
        self._state = state
        self._path = path
        # fail fast on a type id the layout does not define
        self._type = layout.lookup(state.type_id)

    def __repr__(self):
        return (
            f"Cursor({self._path or '<root>'} @ slot {hex(self._state.slot)}, "
            f"offset {self._state.offset}, block {self._state.block})"
        )

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def type(self) -> TypeDescriptor:
        return self._type

    @property
    def byte_offset(self) -> int:
        return self._state.offset

    @property
    def block(self) -> BlockIdentifier:
        return self._state.block

    def slot_number(self) -> int:
        """The absolute slot this cursor points at, without any I/O"""
        return self._state.slot

    def _step(self, kind: str, value: Any, label: str) -> "Cursor":
        state = next_state(self._layout, self._state, (kind, value))
        return Cursor(self._layout, self._provider, state, self._path + label)

    def field(self, name: str) -> "Cursor":
        return self._step("field", name, f".{name}")

    def key(self, key: Any) -> "Cursor":
        return self._step("key", key, f"[{key}]")

    def index(self, i: int) -> "Cursor":
        return self._step("index", i, f"[{i}]")

    def at_block(self, block: BlockIdentifier) -> "Cursor":
        return Cursor(self._layout, self._provider, replace(self._state, block=block), self._path)

    def path(self, expr: str) -> "Cursor":
        """
        Follow a dotted path relative to this cursor, e.g. "field.plots[42]".

        A bracketed segment is a mapping key when the current type is a
        mapping and an array index otherwise.
        """
        return _follow(self, parse_path(expr))

    async def _read(self, slot: int) -> bytes:
        state = self._state
        logger.debug(f"Retrieving storage slot {hex(slot)} of {state.address} at block {state.block}")
        try:
            raw = await self._provider.get_storage_at(state.address, slot, state.block)
        except ContractStorageError:
            raise
        except Exception as e:
            raise StorageIOError(
                f"Failed to read slot {hex(slot)} of {state.address} at block {state.block}: {e}"
            ) from e
        return pad_slot(raw)

    async def _read_range(self, start: int, count: int) -> List[bytes]:
        words = []
        for i in range(count):
            words.append(await self._read((start + i) % SLOT_MODULUS))
        return words

    async def resolve(self) -> Any:
        """
        Read and decode the value at this cursor.

        Returns:
            bool, int or str for value types, a list for arrays, a dict for
            structs and str for bytes/string
        """
        type_ = self._type
        slot = self._state.slot

        if type_.is_mapping:
            raise SchemaError(f"`{self._path}` is a mapping ({type_.label}); select a key before resolving")

        if type_.is_scalar:
            word = await self._read(slot)
            window = get_storage_bytes(word, self._state.offset, type_.number_of_bytes)
            return decode_scalar(window, type_)

        if type_.is_array:
            self._require_in_place_elements(type_)

        if type_.is_struct or type_.is_fixed_array:
            words = await self._read_range(slot, math.ceil(type_.number_of_bytes / SLOT_SIZE))
            if type_.is_struct:
                return decode_struct(words, type_, self._layout)
            return decode_sequence(words, type_, self._layout)

        if type_.is_dynamic_array:
            return await self._resolve_dynamic_array(type_, slot)

        if type_.is_bytes:
            return await self._resolve_bytes(type_, slot)

        raise SchemaError(f"Type `{type_.id}` has unknown encoding `{type_.encoding}`")

    def _require_in_place_elements(self, type_: TypeDescriptor):
        base = self._layout.lookup(type_.base)
        if is_out_of_place(base, self._layout):
            raise UnsupportedTypeError(f"Cannot decode `{type_.label}` as a whole: elements are `{base.label}`")

    async def _resolve_dynamic_array(self, type_: TypeDescriptor, slot: int) -> List[Any]:
        # The regular storage slot contains the length of the array
        length = int.from_bytes(await self._read(slot), "big")
        base = self._layout.lookup(type_.base)
        count = slots_for_array_length(length, base.number_of_bytes)
        words = await self._read_range(data_slot(slot), count)
        return decode_sequence(words, type_, self._layout, length)

    async def _resolve_bytes(self, type_: TypeDescriptor, slot: int) -> str:
        header = await self._read(slot)
        length, is_long = decode_bytes_header(header)
        if not is_long:
            return decode_bytes(header[:length], type_)
        words = await self._read_range(data_slot(slot), math.ceil(length / SLOT_SIZE))
        return decode_bytes(b"".join(words)[:length], type_)


class ContractStorage:
    """
    Entry point for one contract's storage.

    Args:
        provider: Anything having an async `get_storage_at(address, slot, block)`
        contract_address: The contract whose storage is read
        storage_layout: A StorageLayout, or the parsed storage layout JSON
        default_block: Block used unless a cursor selects another with at_block()
    """

    def __init__(
        self,
        provider: StorageProvider,
        contract_address: str,
        storage_layout: Union[StorageLayout, Dict[str, Any]],
        default_block: BlockIdentifier = "latest",
    ):
        if not isinstance(storage_layout, StorageLayout):
            storage_layout = StorageLayout.from_dict(storage_layout)
        self.provider = provider
        self.contract_address = contract_address
        self.layout = storage_layout
        self.default_block = default_block

    def at_block(self, block: BlockIdentifier) -> "ContractStorage":
        return ContractStorage(self.provider, self.contract_address, self.layout, block)

    def var(self, label: str) -> Cursor:
        """Cursor on a top-level state variable"""
        variable = self.layout.top_level_field(label)
        state = NavigationState(
            slot=variable.slot,
            offset=variable.offset,
            type_id=variable.type,
            address=self.contract_address,
            block=self.default_block,
        )
        return Cursor(self.layout, self.provider, state, label)

    def path(self, expr: str) -> Cursor:
        """Cursor for a full path such as "s.season.timestamp" """
        segments = parse_path(expr)
        kind, label = segments[0]
        if kind != "name":
            raise NotFoundError(f"Path `{expr}` must start with a state variable name")
        return _follow(self.var(label), segments[1:])
