#!/usr/bin/env python3
"""
Calculate Solidity mapping and dynamic array storage slots

For a mapping at storage slot N:
  storage_slot = keccak256(abi.encode(key, slot))

For a dynamic array at storage slot N:
  element i lives at keccak256(abi.encode(slot)) + i (for 32-byte elements)

Usage:
  python calculate_storage_slot.py <key> <slot> [key_type]     (key_type defaults to uint256)
  python calculate_storage_slot.py --array <slot> [index]
"""

import sys
from typing import Any, Dict

from eth_abi import encode

from contract_storage.slots import coerce_key, data_slot, mapping_slot


def describe_mapping_slot(key: Any, base_slot: int, key_type: str = "uint256") -> Dict[str, str]:
    """
    Show each step of the mapping slot calculation for a value-type key.

    Returns:
        Dict of hex strings: key bytes, slot bytes, concatenated input and the resulting slot
    """
    if key_type in ("string", "bytes"):
        raise ValueError("Only value-type keys are ABI-encoded; string and bytes keys are hashed unpadded")
    storage_slot = mapping_slot(key, base_slot, key_type)
    encoded = encode([key_type, "uint256"], [coerce_key(key_type, key), base_slot])
    return {
        "key_bytes": encoded[:32].hex(),
        "slot_bytes": encoded[32:].hex(),
        "concatenated": encoded.hex(),
        "storage_slot": f"0x{storage_slot:064x}",
    }


def main():
    if len(sys.argv) >= 3 and sys.argv[1] == "--array":
        slot = int(sys.argv[2], 0)
        start = data_slot(slot)
        print(f"Dynamic array at slot {slot}")
        print(f"  Length slot: {hex(slot)}")
        print(f"  Data starts: 0x{start:064x}")
        if len(sys.argv) > 3:
            index = int(sys.argv[3], 0)
            print(f"  Element {index} (32-byte elements): 0x{start + index:064x}")
        return 0

    if len(sys.argv) < 3:
        print(__doc__)
        return 1

    key = sys.argv[1]
    slot = int(sys.argv[2], 0)
    key_type = sys.argv[3] if len(sys.argv) > 3 else "uint256"

    print("Solidity Mapping Storage Slot Calculator")
    print("=" * 50)
    print(f"Key: {key} ({key_type}), Slot: {slot}")
    print()

    breakdown = describe_mapping_slot(key, slot, key_type)
    print("Calculation breakdown:")
    print("-" * 50)
    print(f"1. Key bytes (32 bytes):  {breakdown['key_bytes']}")
    print(f"2. Slot bytes (32 bytes): {breakdown['slot_bytes']}")
    print(f"3. Concatenated (64 bytes):")
    print(f"   {breakdown['concatenated']}")
    print(f"4. keccak256(concatenated): {breakdown['storage_slot']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
