"""
Cache of web3 contract handles

Handles are keyed by checksum address plus the canonical JSON of the ABI, so
the same contract viewed through two different ABIs gets two handles. The
cache belongs to whoever constructs it; there is no module-level instance.
"""

import json
from typing import Any, Dict, List, Tuple

from web3 import Web3


class ContractCache:

    def __init__(self, w3):
        self.w3 = w3
        self._contracts: Dict[Tuple[str, str], Any] = {}

    def __len__(self):
        return len(self._contracts)

    def get(self, address: str, abi: List[Dict[str, Any]]):
        key = (Web3.to_checksum_address(address), json.dumps(abi, sort_keys=True))
        contract = self._contracts.get(key)
        if contract is None:
            contract = self.w3.eth.contract(address=key[0], abi=abi)
            self._contracts[key] = contract
        return contract

    def clear(self):
        self._contracts.clear()
