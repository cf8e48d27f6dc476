"""
Storage providers: where raw 32-byte words come from

Anything with an async `get_storage_at(address, slot, block)` works as a
provider. Web3StorageProvider adapts web3's AsyncWeb3; RetryingStorageProvider
wraps any provider with a timeout and a bounded number of retries.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from web3 import AsyncHTTPProvider, AsyncWeb3

from . import config
from .errors import StorageIOError
from .slots import BlockIdentifier

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageProvider(Protocol):
    async def get_storage_at(self, address: str, slot: int, block: BlockIdentifier = "latest") -> bytes:
        ...


def connect(url: str = config.RPC_URL, timeout: float = config.RPC_TIMEOUT_MS / 1000) -> AsyncWeb3:
    return AsyncWeb3(AsyncHTTPProvider(url, request_kwargs={"timeout": timeout}))


class Web3StorageProvider:
    """eth_getStorageAt through an AsyncWeb3 instance"""

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def get_storage_at(self, address: str, slot: int, block: BlockIdentifier = "latest") -> bytes:
        address = AsyncWeb3.to_checksum_address(address)
        return await self.w3.eth.get_storage_at(address, slot, block_identifier=block)


async def retryable(
    fn: Callable[[], Awaitable[T]],
    timeout_ms: int = config.RPC_TIMEOUT_MS,
    max_retries: int = config.RPC_MAX_RETRIES,
) -> T:
    """
    Await fn() with a time limit, retrying on any failure.

    Args:
        fn: Creates a fresh awaitable on every call
        timeout_ms: Time limit for each attempt
        max_retries: Attempts allowed after the first one

    Returns:
        The result of the first successful attempt
    """
    last_error: Optional[BaseException] = None
    for attempt in range(max_retries + 1):
        try:
            return await asyncio.wait_for(fn(), timeout_ms / 1000)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e
            remaining = max_retries - attempt
            if remaining > 0:
                logger.warning(f"[retryable] Error encountered, retrying ({remaining} left): {e!r}")
    raise StorageIOError("Exceeded retry count") from last_error


class RetryingStorageProvider:
    """Wraps another provider so each read gets a timeout and retries"""

    def __init__(
        self,
        provider: StorageProvider,
        timeout_ms: int = config.RPC_TIMEOUT_MS,
        max_retries: int = config.RPC_MAX_RETRIES,
    ):
        self.provider = provider
        self.timeout_ms = timeout_ms
        self.max_retries = max_retries

    async def get_storage_at(self, address: str, slot: int, block: BlockIdentifier = "latest") -> bytes:
        return await retryable(
            lambda: self.provider.get_storage_at(address, slot, block),
            self.timeout_ms,
            self.max_retries,
        )
