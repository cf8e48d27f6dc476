"""
Runtime settings, read from the environment (and a .env file if present)
"""

import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

RPC_URL = os.getenv("RPC_URL", "http://localhost:8545")

# Timeout for a single eth_getStorageAt call, and how many more attempts after the first
RPC_TIMEOUT_MS = int(os.getenv("RPC_TIMEOUT_MS", "10000"))
RPC_MAX_RETRIES = int(os.getenv("RPC_MAX_RETRIES", "2"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def parse_block(value):
    """'latest', 'pending', ... pass through; decimal or 0x block numbers become int"""
    value = str(value).strip()
    if value.isdigit():
        return int(value)
    if value.lower().startswith("0x"):
        return int(value, 16)
    return value


DEFAULT_BLOCK = parse_block(os.getenv("DEFAULT_BLOCK", "latest"))
