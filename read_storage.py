#!/usr/bin/env python3
"""
Read contract storage variables by path using a storage layout file

Usage:
  python read_storage.py <layout.json> <contract_address> <path> [<path> ...] [--block N] [--rpc URL]

Example:
  python read_storage.py storageLayout.json 0xC1E088fC1323b20BCBee9bd1B9fC9546db5624C5 \
      s.season.current "s.a[0x4Fea3B55ac16b67c279A042d10C0B7e81dE9c869].roots" --block 19235371

RPC_URL, RPC_TIMEOUT_MS, RPC_MAX_RETRIES and DEFAULT_BLOCK are read from .env
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, List, Tuple

from contract_storage import (
    ContractStorage,
    ContractStorageError,
    RetryingStorageProvider,
    Web3StorageProvider,
    config,
    connect,
    load_layout,
)


async def read_paths(storage: ContractStorage, paths: List[str]) -> List[Tuple[str, int, Any]]:
    """Resolve each path, returning (path, slot, value) in the order given"""
    results = []
    for path in paths:
        cursor = storage.path(path)
        value = await cursor.resolve()
        results.append((path, cursor.slot_number(), value))
    return results


def main():
    ap = argparse.ArgumentParser(description="Read contract storage variables by path.")
    ap.add_argument("layout", help="Storage layout JSON (solc --storage-layout output)")
    ap.add_argument("address", help="Contract address (0x...)")
    ap.add_argument("paths", nargs="+", help="Storage paths, e.g. s.season.timestamp or balances[0xabc...]")
    ap.add_argument("--block", default=config.DEFAULT_BLOCK, help="Block number or tag (default from DEFAULT_BLOCK)")
    ap.add_argument("--rpc", default=config.RPC_URL, help="RPC URL (default from RPC_URL env)")
    args = ap.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL)

    try:
        layout = load_layout(args.layout)
    except (OSError, ContractStorageError) as e:
        print(f"✗ Cannot load storage layout {args.layout}: {e}")
        return 1
    provider = RetryingStorageProvider(Web3StorageProvider(connect(args.rpc)))
    storage = ContractStorage(provider, args.address, layout, config.parse_block(args.block))

    print("=" * 80)
    print(f"Contract: {args.address}")
    print(f"Block:    {storage.default_block}")
    print("=" * 80)

    try:
        results = asyncio.run(read_paths(storage, args.paths))
    except ContractStorageError as e:
        print(f"✗ {type(e).__name__}: {e}")
        return 1

    for path, slot, value in results:
        print(f"\n{path}")
        print(f"  Slot:  {hex(slot)}")
        print(f"  Value: {value}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
