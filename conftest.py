"""Shared fixtures: a solc-style storage layout and an in-memory storage provider"""

from typing import Dict, Iterable, Tuple, Union

import pytest

from contract_storage import ContractStorage, StorageLayout

CONTRACT = "0xC1E088fC1323b20BCBee9bd1B9fC9546db5624C5"
ACCOUNT = "0x4Fea3B55ac16b67c279A042d10C0B7e81dE9c869"

ZERO_WORD = b"\x00" * 32


def pack_word(fields: Iterable[Tuple[int, int, int]]) -> bytes:
    """Build a storage word from (value, offset, size) triples, value already unsigned"""
    value = 0
    for field_value, offset, size in fields:
        assert 0 <= field_value < 1 << (size * 8)
        value |= field_value << (offset * 8)
    return value.to_bytes(32, "big")


class FakeStorageProvider:
    """Serves words from a dict and records every read as (address, slot, block)"""

    def __init__(self, words: Dict[int, Union[bytes, str]] = None):
        self.words = dict(words or {})
        self.by_block: Dict[Tuple[int, object], Union[bytes, str]] = {}
        self.calls = []
        self.failures = 0
        self.error = ConnectionError("node unavailable")

    def set(self, slot: int, value: Union[bytes, str, int], block=None):
        if isinstance(value, int):
            value = value.to_bytes(32, "big")
        if block is None:
            self.words[slot] = value
        else:
            self.by_block[(slot, block)] = value

    async def get_storage_at(self, address, slot, block="latest"):
        self.calls.append((address, slot, block))
        if self.failures:
            self.failures -= 1
            raise self.error
        if (slot, block) in self.by_block:
            return self.by_block[(slot, block)]
        return self.words.get(slot, ZERO_WORD)

    @property
    def slots_read(self):
        return [slot for _, slot, _ in self.calls]


def _scalar(label, size):
    return {"encoding": "inplace", "label": label, "numberOfBytes": str(size)}


def _member(label, type_id, slot, offset=0):
    return {"astId": 1, "contract": "contracts/App.sol:App", "label": label, "offset": offset, "slot": str(slot), "type": type_id}


LAYOUT = {
    "storage": [
        _member("s", "t_struct(AppStorage)40_storage", 0),
        _member("total", "t_int128", 25, 0),
        _member("flag", "t_bool", 25, 16),
        _member("data", "t_bytes_storage", 26),
        _member("pairs", "t_array(t_struct(Pair)20_storage)dyn_storage", 27),
        _member("grid", "t_array(t_array(t_uint8)2_storage)3_storage", 28),
        _member("allowance", "t_mapping(t_address,t_mapping(t_address,t_uint256))", 31),
        _member("byName", "t_mapping(t_string_memory_ptr,t_uint256)", 32),
        _member("deltas", "t_array(t_int16)dyn_storage", 33),
        _member("hashes", "t_array(t_bytes32)dyn_storage", 34),
        _member("holders", "t_array(t_address)dyn_storage", 35),
        _member("history", "t_array(t_array(t_uint256)dyn_storage)dyn_storage", 36),
        _member("byStatus", "t_mapping(t_enum(Status)50,t_uint256)", 37),
        _member("byToken", "t_mapping(t_contract(IERC20)60,t_uint256)", 38),
        _member("byTick", "t_mapping(t_int24,t_uint256)", 39),
        _member("bySelector", "t_mapping(t_bytes4,t_bool)", 40),
        _member("names", "t_array(t_string_storage)2_storage", 41),
        _member("rec", "t_struct(Rec)70_storage", 43),
        _member("books", "t_array(t_mapping(t_uint256,t_uint256))3_storage", 46),
        _member("byData", "t_mapping(t_bytes_memory_ptr,t_uint256)", 49),
    ],
    "types": {
        "t_address": _scalar("address", 20),
        "t_bool": _scalar("bool", 1),
        "t_bytes4": _scalar("bytes4", 4),
        "t_bytes32": _scalar("bytes32", 32),
        "t_int16": _scalar("int16", 2),
        "t_int24": _scalar("int24", 3),
        "t_int128": _scalar("int128", 16),
        "t_uint8": _scalar("uint8", 1),
        "t_uint32": _scalar("uint32", 4),
        "t_uint128": _scalar("uint128", 16),
        "t_uint256": _scalar("uint256", 32),
        "t_enum(Status)50": _scalar("enum Status", 1),
        "t_contract(IERC20)60": _scalar("contract IERC20", 20),
        "t_string_memory_ptr": {"encoding": "bytes", "label": "string", "numberOfBytes": "32"},
        "t_string_storage": {"encoding": "bytes", "label": "string", "numberOfBytes": "32"},
        "t_bytes_storage": {"encoding": "bytes", "label": "bytes", "numberOfBytes": "32"},
        "t_bytes_memory_ptr": {"encoding": "bytes", "label": "bytes", "numberOfBytes": "32"},
        "t_mapping(t_bytes_memory_ptr,t_uint256)": {
            "encoding": "mapping", "key": "t_bytes_memory_ptr", "label": "mapping(bytes => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_array(t_string_storage)2_storage": {"base": "t_string_storage", "encoding": "inplace", "label": "string[2]", "numberOfBytes": "64"},
        "t_array(t_mapping(t_uint256,t_uint256))3_storage": {
            "base": "t_mapping(t_uint256,t_uint256)", "encoding": "inplace", "label": "mapping(uint256 => uint256)[3]", "numberOfBytes": "96",
        },
        "t_struct(Rec)70_storage": {
            "encoding": "inplace", "label": "struct App.Rec", "numberOfBytes": "96",
            "members": [
                _member("id", "t_uint256", 0),
                _member("tags", "t_array(t_string_storage)2_storage", 1),
            ],
        },
        "t_array(t_uint8)32_storage": {"base": "t_uint8", "encoding": "inplace", "label": "uint8[32]", "numberOfBytes": "32"},
        "t_array(t_uint8)2_storage": {"base": "t_uint8", "encoding": "inplace", "label": "uint8[2]", "numberOfBytes": "32"},
        "t_array(t_array(t_uint8)2_storage)3_storage": {
            "base": "t_array(t_uint8)2_storage", "encoding": "inplace", "label": "uint8[2][3]", "numberOfBytes": "96",
        },
        "t_array(t_uint256)14_storage": {"base": "t_uint256", "encoding": "inplace", "label": "uint256[14]", "numberOfBytes": "448"},
        "t_array(t_address)3_storage": {"base": "t_address", "encoding": "inplace", "label": "address[3]", "numberOfBytes": "96"},
        "t_array(t_uint32)dyn_storage": {"base": "t_uint32", "encoding": "dynamic_array", "label": "uint32[]", "numberOfBytes": "32"},
        "t_array(t_int16)dyn_storage": {"base": "t_int16", "encoding": "dynamic_array", "label": "int16[]", "numberOfBytes": "32"},
        "t_array(t_bytes32)dyn_storage": {"base": "t_bytes32", "encoding": "dynamic_array", "label": "bytes32[]", "numberOfBytes": "32"},
        "t_array(t_address)dyn_storage": {"base": "t_address", "encoding": "dynamic_array", "label": "address[]", "numberOfBytes": "32"},
        "t_array(t_uint256)dyn_storage": {"base": "t_uint256", "encoding": "dynamic_array", "label": "uint256[]", "numberOfBytes": "32"},
        "t_array(t_array(t_uint256)dyn_storage)dyn_storage": {
            "base": "t_array(t_uint256)dyn_storage", "encoding": "dynamic_array", "label": "uint256[][]", "numberOfBytes": "32",
        },
        "t_array(t_struct(Pair)20_storage)dyn_storage": {
            "base": "t_struct(Pair)20_storage", "encoding": "dynamic_array", "label": "struct App.Pair[]", "numberOfBytes": "32",
        },
        "t_mapping(t_uint256,t_uint256)": {
            "encoding": "mapping", "key": "t_uint256", "label": "mapping(uint256 => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_address,t_uint256)": {
            "encoding": "mapping", "key": "t_address", "label": "mapping(address => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_address,t_mapping(t_address,t_uint256))": {
            "encoding": "mapping", "key": "t_address", "label": "mapping(address => mapping(address => uint256))",
            "numberOfBytes": "32", "value": "t_mapping(t_address,t_uint256)",
        },
        "t_mapping(t_address,t_struct(Account)30_storage)": {
            "encoding": "mapping", "key": "t_address", "label": "mapping(address => struct App.Account)",
            "numberOfBytes": "32", "value": "t_struct(Account)30_storage",
        },
        "t_mapping(t_string_memory_ptr,t_uint256)": {
            "encoding": "mapping", "key": "t_string_memory_ptr", "label": "mapping(string => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_enum(Status)50,t_uint256)": {
            "encoding": "mapping", "key": "t_enum(Status)50", "label": "mapping(enum Status => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_contract(IERC20)60,t_uint256)": {
            "encoding": "mapping", "key": "t_contract(IERC20)60", "label": "mapping(contract IERC20 => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_int24,t_uint256)": {
            "encoding": "mapping", "key": "t_int24", "label": "mapping(int24 => uint256)", "numberOfBytes": "32", "value": "t_uint256",
        },
        "t_mapping(t_bytes4,t_bool)": {
            "encoding": "mapping", "key": "t_bytes4", "label": "mapping(bytes4 => bool)", "numberOfBytes": "32", "value": "t_bool",
        },
        "t_struct(Season)10_storage": {
            "encoding": "inplace", "label": "struct App.Season", "numberOfBytes": "64",
            "members": [
                _member("current", "t_uint32", 0, 0),
                _member("sunriseBlock", "t_uint32", 0, 4),
                _member("abovePeg", "t_bool", 0, 8),
                _member("timestamp", "t_uint256", 1, 0),
            ],
        },
        "t_struct(Pair)20_storage": {
            "encoding": "inplace", "label": "struct App.Pair", "numberOfBytes": "32",
            "members": [
                _member("b", "t_uint128", 0, 0),
                _member("a", "t_uint128", 0, 16),
            ],
        },
        "t_struct(Account)30_storage": {
            "encoding": "inplace", "label": "struct App.Account", "numberOfBytes": "64",
            "members": [
                _member("roots", "t_uint256", 0, 0),
                _member("plots", "t_mapping(t_uint256,t_uint256)", 1, 0),
            ],
        },
        "t_struct(AppStorage)40_storage": {
            "encoding": "inplace", "label": "struct App.AppStorage", "numberOfBytes": "800",
            "members": [
                _member("season", "t_struct(Season)10_storage", 0),
                _member("a", "t_mapping(t_address,t_struct(Account)30_storage)", 2),
                _member("cases", "t_array(t_uint8)32_storage", 3),
                _member("deprecated", "t_array(t_uint256)14_storage", 4),
                _member("activeBips", "t_array(t_uint32)dyn_storage", 18),
                _member("owners", "t_array(t_address)3_storage", 19),
                _member("name", "t_string_storage", 22),
                _member("pair", "t_struct(Pair)20_storage", 23),
                _member("status", "t_enum(Status)50", 24, 0),
                _member("token", "t_contract(IERC20)60", 24, 1),
            ],
        },
    },
}


@pytest.fixture
def layout():
    return StorageLayout.from_dict(LAYOUT)


@pytest.fixture
def provider():
    return FakeStorageProvider()


@pytest.fixture
def storage(provider, layout):
    return ContractStorage(provider, CONTRACT, layout)
